import asyncio

from phileas_launcher.tailer import tail_log_file


def _append(path, lines):
  with path.open('a', encoding='utf-8') as file_obj:
    for line in lines:
      file_obj.write(line + '\n')


def test_only_lines_appended_after_attach_are_streamed(tmp_path, sink):
  log_file = tmp_path / 'server.log'
  _append(log_file, [f'old {i}' for i in range(5)])

  async def scenario():
    task = asyncio.ensure_future(tail_log_file(log_file, sink, poll_interval=0.02))
    await asyncio.sleep(0.1)
    _append(log_file, [f'new {i}' for i in range(3)])
    for _ in range(100):
      if len(sink.lines) >= 3:
        break
      await asyncio.sleep(0.02)
    await asyncio.sleep(0.1)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

  asyncio.run(scenario())

  assert sink.lines == ['new 0', 'new 1', 'new 2']


def test_partial_line_waits_for_newline(tmp_path, sink):
  log_file = tmp_path / 'server.log'
  log_file.write_text('', encoding='utf-8')

  async def scenario():
    task = asyncio.ensure_future(tail_log_file(log_file, sink, poll_interval=0.02))
    await asyncio.sleep(0.1)
    with log_file.open('a', encoding='utf-8') as file_obj:
      file_obj.write('half a ')
      file_obj.flush()
      await asyncio.sleep(0.1)
      partial_seen = list(sink.lines)
      file_obj.write('line\n')
    for _ in range(100):
      if sink.lines:
        break
      await asyncio.sleep(0.02)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    return partial_seen

  assert asyncio.run(scenario()) == []
  assert sink.lines == ['half a line']


def test_missing_file_reports_one_error_and_returns(tmp_path, sink):
  asyncio.run(asyncio.wait_for(tail_log_file(tmp_path / 'missing.log', sink), timeout=2))

  assert len(sink.lines) == 1
  assert sink.lines[0].startswith('Could not open log file')
