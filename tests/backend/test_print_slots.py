from sqlalchemy.exc import OperationalError

from backend import print_slots


def test_main_prints_resolved_slots(db, professional, monkeypatch, capsys) -> None:
    monkeypatch.setattr(print_slots, 'SessionLocal', lambda: db)

    exit_code = print_slots.main(['pro-1', '2030-01-07'])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == [
        '09:00  available',
        '10:00  available',
        '11:00  available',
    ]


def test_main_reports_unknown_professional(db, monkeypatch, capsys) -> None:
    monkeypatch.setattr(print_slots, 'SessionLocal', lambda: db)

    exit_code = print_slots.main(['missing', '2030-01-07'])

    assert exit_code == 1
    assert "Professional 'missing' not found." in capsys.readouterr().err


def test_main_reports_day_without_availability(db, professional, monkeypatch, capsys) -> None:
    monkeypatch.setattr(print_slots, 'SessionLocal', lambda: db)

    exit_code = print_slots.main(['pro-1', '2030-01-08'])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == 'No availability on 2030-01-08.'


def test_main_reports_database_failure(db, professional, monkeypatch, caplog) -> None:
    def fail(*args, **kwargs):
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(print_slots, 'SessionLocal', lambda: db)
    monkeypatch.setattr(print_slots, 'list_slots', fail)

    exit_code = print_slots.main(['pro-1', '2030-01-07'])

    assert exit_code == 2
    assert 'Could not read slots' in caplog.text
