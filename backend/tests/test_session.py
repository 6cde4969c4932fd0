from villa_booking.db.session import engine_options


def test_mysql_gets_a_pinged_pool():
    options = engine_options("mysql+aiomysql://app:secret@db:3306/villas")
    assert options["pool_pre_ping"] is True
    assert options["pool_size"] == 10
    assert "connect_args" not in options


def test_sqlite_keeps_dialect_pool():
    options = engine_options("sqlite+aiosqlite:///./villas.db")
    assert "pool_size" not in options
    assert options["connect_args"] == {"check_same_thread": False}
