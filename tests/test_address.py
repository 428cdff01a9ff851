import pytest

from phileas_launcher.address import base_url, resolve_addr


@pytest.mark.parametrize('addr, expected', [
  (':1920', '127.0.0.1:1920'),
  ('localhost:1920', '127.0.0.1:1920'),
  ('127.0.0.1:1920', '127.0.0.1:1920'),
  ('192.168.1.1:1920', '192.168.1.1:1920'),
  ('phileas.lan:8080', 'phileas.lan:8080'),
])
def test_resolve_addr(addr, expected):
  assert resolve_addr(addr) == expected


def test_only_exact_localhost_is_rewritten():
  assert resolve_addr('localhost.example:1920') == 'localhost.example:1920'
  assert resolve_addr('mylocalhost:1920') == 'mylocalhost:1920'


def test_malformed_input_passes_through():
  assert resolve_addr('no-port-here') == 'no-port-here'
  assert resolve_addr('') == ''


def test_base_url_of_resolved_address():
  assert base_url(resolve_addr(':1920')) == 'http://127.0.0.1:1920'
  assert base_url(resolve_addr('localhost:1920')) == 'http://127.0.0.1:1920'
