"""
Unit tests for glamcrm/db/connection.py.

psycopg2.connect is patched so no database is needed; driver exceptions are
real psycopg2 classes so the error mapping is exercised as in production.
"""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.extras import RealDictCursor

from glamcrm.config import config
from glamcrm.db.connection import get_db_connection, get_db_cursor, translate_db_error
from glamcrm.errors import TransientIOError, ValidationError


@pytest.fixture
def mock_connect():
    with patch('glamcrm.db.connection.psycopg2.connect') as connect:
        connect.return_value = MagicMock()
        yield connect


# ---------------------------------------------------------------------------
# translate_db_error
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("exc_class, expected", [
    (psycopg2.IntegrityError, ValidationError),
    (psycopg2.DataError, ValidationError),
    (psycopg2.OperationalError, TransientIOError),
    (psycopg2.InterfaceError, TransientIOError),
])
def test_translate_db_error(exc_class, expected):
    translated = translate_db_error(exc_class("boom"))
    assert isinstance(translated, expected)
    assert 'boom' in str(translated)


# ---------------------------------------------------------------------------
# get_db_connection
# ---------------------------------------------------------------------------

class TestGetDbConnection:

    def test_commits_and_closes_on_success(self, mock_connect):
        with get_db_connection('postgresql://x/db') as conn:
            pass
        mock_connect.assert_called_once()
        assert mock_connect.call_args[0][0] == 'postgresql://x/db'
        assert 'connect_timeout' in mock_connect.call_args[1]
        assert mock_connect.call_args[1]['options'] == f"-c timezone={config.TIMEZONE}"
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    def test_connect_failure_is_transient(self, mock_connect):
        mock_connect.side_effect = psycopg2.OperationalError("could not connect to server")
        with pytest.raises(TransientIOError, match='could not connect'):
            with get_db_connection('postgresql://x/db'):
                pass

    def test_integrity_error_rolls_back_as_validation_error(self, mock_connect):
        conn = mock_connect.return_value
        with pytest.raises(ValidationError, match='Rejected by database'):
            with get_db_connection('postgresql://x/db'):
                raise psycopg2.IntegrityError("null value in column \"email\"")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()

    def test_other_errors_roll_back_and_propagate(self, mock_connect):
        conn = mock_connect.return_value
        with pytest.raises(KeyError):
            with get_db_connection('postgresql://x/db'):
                raise KeyError('id')
        conn.rollback.assert_called_once()
        conn.close.assert_called_once()


# ---------------------------------------------------------------------------
# get_db_cursor
# ---------------------------------------------------------------------------

class TestGetDbCursor:

    def test_dict_cursor_by_default(self, mock_connect):
        conn = mock_connect.return_value
        with get_db_cursor(dsn='postgresql://x/db') as cur:
            assert cur is conn.cursor.return_value
        conn.cursor.assert_called_once_with(cursor_factory=RealDictCursor)
        cur.close.assert_called_once()

    def test_plain_cursor(self, mock_connect):
        conn = mock_connect.return_value
        with get_db_cursor(dict_cursor=False, dsn='postgresql://x/db'):
            pass
        conn.cursor.assert_called_once_with(cursor_factory=None)
