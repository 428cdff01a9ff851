from phileas_launcher import version


def test_injected_version_wins(tmp_path):
  version_file = tmp_path / '_version.txt'
  version_file.write_text('1.2.3\n', encoding='utf-8')

  assert version.resolve_version({'APP_VERSION': ' 2.0.0 '}, version_file) == '2.0.0'


def test_version_file_is_used_without_injection(tmp_path):
  version_file = tmp_path / '_version.txt'
  version_file.write_text('1.2.3\n', encoding='utf-8')

  assert version.resolve_version({}, version_file) == '1.2.3'


def test_falls_back_when_nothing_is_known(tmp_path, monkeypatch):
  monkeypatch.setattr(version, '_distribution_version', lambda: None)

  assert version.resolve_version({}, tmp_path / 'missing.txt') == version.FALLBACK_VERSION
