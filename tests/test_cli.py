"""Tests for the local (offline) CLI commands."""

import json

import pytest

from haccp.registers.cli import main


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("HACCP_DATA_DIR", str(tmp_path))
    return tmp_path


def test_lot(capsys):
    main(["lot", "Salsa piccante", "--date", "21/10/2025"])
    assert capsys.readouterr().out.strip() == "SAPI211025"


def test_lot_unique_against_ledger(tmp_path, capsys):
    ledger = tmp_path / "ledger.csv"
    ledger.write_text(
        "Data Produzione;Data Scadenza;Prodotto;Lotto Prodotto\r\n"
        "21/10/2025;24/10/2025;Salsa piccante;SAPI211025\r\n",
        encoding="utf-8",
    )
    main(["lot", "Salsa piccante", "--date", "2025-10-21", "--ledger", str(ledger)])
    assert capsys.readouterr().out.strip() == "SAPI2110252"


def test_lot_without_letters(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["lot", "123", "--date", "21/10/2025"])
    assert exc.value.code == 1
    assert "Errore" in capsys.readouterr().err


def test_incoming_add_list_export(data_dir, capsys):
    main(["incoming", "add", "Pomodoro", "LTN-1", "21/10/2025", "--supplier", "Orto"])
    main(["incoming", "add", "Pomodoro", "LTN-2", "22/10/2025"])
    capsys.readouterr()

    main(["incoming", "list"])
    out = capsys.readouterr().out
    assert out.index("LTN-2") < out.index("LTN-1")
    assert "[Orto]" in out

    target = data_dir / "ingresso.csv"
    main(["incoming", "export", "-o", str(target)])
    assert target.read_text(encoding="utf-8").splitlines() == [
        "Nome alimento;Lotto;Data di acquisto;Fornitore",
        "Pomodoro;LTN-1;21/10/2025;Orto",
        "Pomodoro;LTN-2;22/10/2025;",
    ]


def test_template_add_and_suggest(data_dir, capsys):
    main(["template", "add", "Ragù", "Carne", "Pomodoro", "--category", "Salse"])
    stored = json.loads((data_dir / "templates.json").read_text(encoding="utf-8"))
    assert {"Ragù", "Salsa base"} <= {t["nome"] for t in stored["templates"]}
    capsys.readouterr()

    main(["template", "ingredients", "pomo"])
    assert capsys.readouterr().out.split() == ["Pomodoro"]


def test_template_duplicate(capsys):
    with pytest.raises(SystemExit):
        main(["template", "add", "Salsa base", "Pomodoro"])
    assert "esiste già" in capsys.readouterr().err


def test_record_and_list(data_dir, capsys):
    main([
        "record", "05/10/2025", "--freezer", "-19", "--fridge1", "2",
        "--fridge2", "3.5", "--not-done", "ovens",
    ])
    main(["records", "--month", "2025-10", "--json"])
    out = capsys.readouterr().out
    (record,) = json.loads(out[out.index("["):])
    assert record["date"] == "2025-10-05"
    assert record["temperatures"]["freezer"] == -19
    assert record["cleaning"]["ovens"] is False
    assert record["cleaning"]["floors"] is True


def test_generate_requires_signature(capsys):
    with pytest.raises(SystemExit):
        main(["generate", "01/10/2025", "03/10/2025"])
    assert "firma" in capsys.readouterr().err.lower()


def test_pdf(data_dir, capsys):
    main(["record", "05/10/2025"])
    target = data_dir / "out.pdf"
    main(["pdf", "temperature", "2025-10", "-o", str(target)])
    assert target.read_bytes().startswith(b"%PDF")
