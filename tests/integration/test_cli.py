import sqlite3
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from src.api.deps import get_settings, reset_shared_state
from src.api.main import app
from src.app_shell import cli
from src.app_shell.cli import main

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BASE = "https://lms.example"


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(PROJECT_ROOT)
    monkeypatch.setenv("NICE_URLS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("NICE_URLS_BASE_URL", BASE)

    assert main(["migrate"]) == 0

    conn = sqlite3.connect(tmp_path / "nice_urls.db")
    conn.executescript("""
        CREATE TABLE course (id INTEGER PRIMARY KEY, shortname TEXT NOT NULL);
        INSERT INTO course (id, shortname) VALUES (42, 'intro-to-cs');
    """)
    conn.commit()
    conn.close()
    return tmp_path


@pytest.fixture
def rules_file(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        """
rules:
  - pattern: '^course/([a-z0-9-]+)/?$'
    template: 'course/view.php?id=${1}'
    readable: 'course/${1}'
    forward_params:
      1: {kind: convert, conversion: db, args: [course, shortname, id]}
    inverse_params:
      1: {kind: convert, conversion: db, args: [course, id, shortname]}
"""
    )
    return path


def test_load_convert_invert(data_dir, rules_file, capsys):
    assert main(["load-rules", str(rules_file)]) == 0
    assert "Loaded 1 rules." in capsys.readouterr().out

    assert main(["convert", "course/intro-to-cs"]) == 0
    assert capsys.readouterr().out.strip() == f"{BASE}/course/view.php?id=42"

    assert main(["invert", f"{BASE}/course/view.php?id=42"]) == 0
    assert capsys.readouterr().out.strip() == f"{BASE}/course/intro-to-cs"


def test_convert_without_match_fails(data_dir, rules_file):
    main(["load-rules", str(rules_file)])

    assert main(["convert", "course/missing"]) == 1


def test_load_rules_replace(data_dir, rules_file, capsys):
    main(["load-rules", str(rules_file)])
    main(["load-rules", "--replace", str(rules_file)])
    capsys.readouterr()

    assert main(["delete-rule", "2"]) == 0
    assert main(["delete-rule", "1"]) == 1


def test_load_rules_missing_file(data_dir, tmp_path):
    assert main(["load-rules", str(tmp_path / "missing.yaml")]) == 1


def test_load_rules_replace_deletes_through_component(data_dir, rules_file, monkeypatch):
    main(["load-rules", str(rules_file)])
    deleted = []
    original = cli.run_delete_rule

    def recording_delete(inp, **kwargs):
        deleted.append(inp.rule_id)
        return original(inp, **kwargs)

    monkeypatch.setattr(cli, "run_delete_rule", recording_delete)

    assert main(["load-rules", "--replace", str(rules_file)]) == 0
    assert deleted == [1]


@pytest.fixture
def server(data_dir, rules_file, monkeypatch):
    main(["load-rules", str(rules_file)])
    get_settings.cache_clear()
    reset_shared_state()
    with TestClient(app) as test_client:
        monkeypatch.setattr(httpx, "delete", lambda url, timeout: test_client.delete(url))
        yield test_client
    get_settings.cache_clear()


def test_delete_rule_through_server_invalidates_its_cache(server, capsys):
    route = server.get("/route", params={"qs": "course/intro-to-cs"}, follow_redirects=False)
    assert route.headers["location"] == f"{BASE}/course/view.php?id=42"
    capsys.readouterr()

    assert main(["delete-rule", "1", "--server", BASE]) == 0

    assert "Deleted rule 1 (1 cached URLs invalidated)." in capsys.readouterr().out
    fallback = server.get("/route", params={"qs": "course/intro-to-cs"}, follow_redirects=False)
    assert fallback.headers["location"] == f"{BASE}/"


def test_delete_missing_rule_through_server(server):
    assert main(["delete-rule", "99", "--server", BASE]) == 1
