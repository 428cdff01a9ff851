import asyncio
import sys

import pytest

from phileas_launcher.errors import ProcessExitedWithError, ProcessStartFailed, ProcessTimedOut
from phileas_launcher.process import ProcessSupervisor
from tests.conftest import python_command


def test_captures_stdout_and_stderr_in_order(sink):
  code = (
    'import sys\n'
    'for i in range(3):\n'
    '  print(f"out {i}", flush=True)\n'
    '  print(f"err {i}", file=sys.stderr, flush=True)\n'
  )

  returncode = asyncio.run(ProcessSupervisor(sink).run_with_output(python_command(code)))

  assert returncode == 0
  assert [line for line in sink.lines if line.startswith('out')] == ['out 0', 'out 1', 'out 2']
  assert [line for line in sink.lines if line.startswith('err')] == ['err 0', 'err 1', 'err 2']


def test_non_zero_exit_raises_with_returncode(sink):
  supervisor = ProcessSupervisor(sink)

  with pytest.raises(ProcessExitedWithError) as excinfo:
    asyncio.run(supervisor.run_with_output(python_command('print("bye"); raise SystemExit(4)')))

  assert excinfo.value.returncode == 4
  assert sink.lines == ['bye']


def test_missing_binary_raises_start_failure(sink, tmp_path):
  with pytest.raises(ProcessStartFailed):
    asyncio.run(ProcessSupervisor(sink).run_with_output([str(tmp_path / 'no-such-binary')]))
  assert sink.lines == []


def test_lines_are_forwarded_before_exit(sink):
  supervisor = ProcessSupervisor(sink)
  code = 'import time; print("started", flush=True); time.sleep(30)'

  async def scenario():
    task = asyncio.ensure_future(supervisor.run_with_output(python_command(code)))
    for _ in range(200):
      if sink.lines:
        break
      await asyncio.sleep(0.05)
    alive_when_seen = supervisor.is_alive
    supervisor.kill()
    with pytest.raises(ProcessExitedWithError):
      await task
    return alive_when_seen

  assert asyncio.run(scenario()) is True
  assert sink.lines[0] == 'started'
  assert not supervisor.is_alive


def test_timeout_kills_the_process(sink):
  supervisor = ProcessSupervisor(sink)

  with pytest.raises(ProcessTimedOut):
    asyncio.run(supervisor.run_with_output(python_command('import time; time.sleep(30)'), timeout=0.5))

  assert not supervisor.is_alive


def test_second_process_cannot_start_while_one_is_alive(sink):
  supervisor = ProcessSupervisor(sink)

  async def scenario():
    task = asyncio.ensure_future(supervisor.run_with_output(python_command('import time; time.sleep(30)')))
    for _ in range(100):
      if supervisor.is_alive:
        break
      await asyncio.sleep(0.05)
    try:
      with pytest.raises(RuntimeError):
        await supervisor.run_with_output(python_command('pass'))
    finally:
      supervisor.kill()
      await asyncio.gather(task, return_exceptions=True)

  asyncio.run(scenario())


def test_kill_without_process_is_a_no_op(sink):
  ProcessSupervisor(sink).kill()


def test_runs_in_requested_directory(sink, tmp_path):
  asyncio.run(ProcessSupervisor(sink).run_with_output(
    [sys.executable, '-c', 'import os; print(os.getcwd())'],
    cwd=tmp_path
  ))

  assert sink.lines[-1] == str(tmp_path.resolve()) or sink.lines[-1] == str(tmp_path)
