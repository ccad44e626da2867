import importlib.util
import os

from mediplan.config import get_settings

SCRIPT = os.path.join(os.path.dirname(__file__), '..', 'scripts', 'bootstrap_store.py')


def _load_script():
    spec = importlib.util.spec_from_file_location('bootstrap_store', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_dry_run_reports_demo_collections(monkeypatch, capsys):
    monkeypatch.setenv('MEDIPLAN_DATABASE_URL', 'sqlite://')
    get_settings.cache_clear()

    assert _load_script().main(['--dry-run']) == 0

    out = capsys.readouterr().out
    assert 'memory (dry run)' in out
    assert 'patients:        4' in out
    assert 'admin@mediplan.ma (admin)' in out
    get_settings.cache_clear()


def test_empty_seed_on_sql_backend(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv('MEDIPLAN_DATABASE_URL', 'sqlite://')
    get_settings.cache_clear()
    url = f"sqlite:///{tmp_path / 'cabinet.db'}"

    assert _load_script().main(['--database-url', url, '--empty']) == 0

    out = capsys.readouterr().out
    assert url in out
    assert 'patients:        0' in out
    assert (tmp_path / 'cabinet.db').exists()
    get_settings.cache_clear()
