from phileas_launcher.monitor import LaunchMonitor


def test_drain_returns_only_new_entries():
  monitor = LaunchMonitor()
  monitor.log_line('> Waiting for server...')
  monitor.log_line('INFO ready')

  first = monitor.drain_new_entries()
  monitor.log_line('third')
  second = monitor.drain_new_entries()

  assert [entry.text for entry in first] == ['> Waiting for server...', 'INFO ready']
  assert [entry.kind.value for entry in first] == ['system', 'info']
  assert [entry.text for entry in second] == ['third']
  assert monitor.drain_new_entries() == []


def test_scrollback_drops_oldest_lines():
  monitor = LaunchMonitor(scrollback_limit=3)
  for index in range(5):
    monitor.log_line(f'line {index}')

  lines = [line['text'] for line in monitor.snapshot()['lines']]

  assert lines == ['line 2', 'line 3', 'line 4']


def test_snapshot_tracks_title_and_ready_url():
  monitor = LaunchMonitor()
  monitor.set_title('phileasgo.exe')
  monitor.set_title('server.log')
  monitor.ready('http://localhost:1920')

  snapshot = monitor.snapshot()

  assert snapshot['title'] == 'server.log'
  assert snapshot['readyUrl'] == 'http://localhost:1920'
