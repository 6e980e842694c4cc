"""Unit tests for Queryx binding and execution.
"""
from dataclasses import dataclass, field

import pytest
from cassandra.query import UNSET_VALUE
from cqlbind.binder import unset_none
from cqlbind.exceptions import CompileError, CqlBindError, NotFoundError
from cqlbind.exceptions import ResolutionError, ShapeError
from cqlbind.options import SessionOptions
from cqlbind.queryx import Queryx, named_query
from cqlbind.reflect import UDT
from cqlbind.session import Session
from cqlbind.udt import UDTValue


@dataclass
class Address(UDT):
    street: str = ''
    number: int = 0


@dataclass
class Person:
    id: int = 0
    first_name: str = ''
    last_name: str = field(default='', metadata={'db': 'surname'})
    address: Address | None = None


INSERT = 'INSERT INTO person (id, first_name, last_name, address) VALUES (:id, :first_name, :surname, :address)'


@pytest.fixture
def session(create_driver_session):
    return Session(create_driver_session())


class TestBinding:

    def test_named_query_compiles(self):
        q = named_query('SELECT * FROM person WHERE id=:id')
        assert q.stmt == 'SELECT * FROM person WHERE id=?'
        assert q.names == ['id']
        assert q.values is None

    def test_named_query_compile_error(self):
        with pytest.raises(CompileError):
            named_query('SELECT * FROM person')

    def test_bind_checks_count(self):
        q = Queryx('SELECT * FROM t WHERE a=? AND b=?', ['a', 'b'])
        with pytest.raises(ShapeError, match='query requires 2 arguments, but 1 provided'):
            q.bind(1)
        assert q.bind(1, 2).values == [1, 2]

    def test_bind_struct(self):
        q = named_query(INSERT).bind_struct(Person(1, 'Ada', 'Lovelace'))
        assert q.values == [1, 'Ada', 'Lovelace', None]

    def test_bind_struct_missing_name_raises_immediately(self):
        q = named_query('SELECT * FROM t WHERE id=:id AND ttl=:ttl')
        with pytest.raises(ResolutionError, match="'ttl'"):
            q.bind_struct(Person(1))

    def test_bind_struct_map(self):
        q = named_query('UPDATE t USING TTL :ttl SET first_name=:first_name WHERE id=:id')
        q.bind_struct_map(Person(1, 'Ada'), {'ttl': 60})
        assert q.values == [60, 'Ada', 1]

    def test_bind_map(self):
        q = named_query('SELECT * FROM t WHERE a=:a AND b=:b').bind_map({'b': 2, 'a': 1})
        assert q.values == [1, 2]

    def test_udt_arguments_are_wrapped(self):
        """Bound UDT values are wrapped for the driver serializer"""
        address = Address('Main', 5)
        q = named_query(INSERT).bind_struct(Person(1, 'Ada', 'Lovelace', address))
        assert isinstance(q.values[3], UDTValue)
        assert q.values[3].unwrap() is address

    def test_wrapped_udt_protocol_version(self):
        """Wrappers carry the configured protocol version"""
        q = named_query(INSERT, options={'protocol_version': 3})
        q.bind_struct(Person(1, 'Ada', 'Lovelace', Address('Main', 5)))
        assert q.values[3].protocol_version == 3
        assert named_query(INSERT).bind(1, 'a', 'b', Address()).values[3].protocol_version == 4

    def test_wrap_udt_disabled(self):
        """The fast path binds UDT values as they are"""
        address = Address('Main', 5)
        q = named_query(INSERT).bind_struct(Person(1, 'Ada', 'Lovelace', address), wrap_udt=False)
        assert q.values[3] is address
        q = named_query(INSERT, options={'wrap_udt': False}).bind(1, 'a', 'b', address)
        assert q.values[3] is address

    def test_bind_transformer_option(self):
        q = named_query('SELECT * FROM t WHERE a=:a', options=SessionOptions(bind_transformer=unset_none))
        assert q.bind_map({'a': None}).values == [UNSET_VALUE]


class TestExecution:

    def test_exec_without_session(self):
        with pytest.raises(CqlBindError, match='not attached to a session'):
            Queryx('TRUNCATE t', []).exec()

    def test_exec_requires_bound_values(self, session):
        with pytest.raises(ShapeError, match='query requires 1 arguments, but 0 provided'):
            session.query('DELETE FROM t WHERE id=?', ['id']).exec()

    def test_exec(self, session):
        session.named_query(INSERT).bind_struct(Person(1, 'Ada', 'Lovelace')).exec()
        statement, values = session.driver.executed[0]
        assert statement.query_string == 'INSERT INTO person (id, first_name, last_name, address) VALUES (?, ?, ?, ?)'
        assert values == [1, 'Ada', 'Lovelace', None]

    def test_get(self, session):
        session.driver.queue(['id', 'first_name', 'surname'], [(1, 'Ada', 'Lovelace')])
        person = session.named_query('SELECT * FROM person WHERE id=:id').bind(1).get(Person)
        assert person == Person(1, 'Ada', 'Lovelace')

    def test_get_not_found(self, session):
        session.driver.queue(['id'], [])
        with pytest.raises(NotFoundError):
            session.named_query('SELECT * FROM person WHERE id=:id').bind(1).get(Person)

    def test_select(self, session):
        session.driver.queue(['id'], [(1,), (2,)])
        assert session.query('SELECT id FROM person', []).select(int) == [1, 2]

    def test_select_records_uses_session_loader(self, create_driver_session):
        def loader(rows, columns, **kwargs):
            return columns, rows

        session = Session(create_driver_session(), data_loader=loader)
        session.driver.queue(['id'], [(1,)])
        assert session.query('SELECT id FROM person', []).select_records() == (['id'], [{'id': 1}])

    def test_iter_uses_session_options(self, create_driver_session):
        session = Session(create_driver_session(), unsafe=True)
        session.driver.queue(['id', 'nickname'], [(1, 'ada')])
        it = session.query('SELECT * FROM person', []).iter()
        assert it.is_unsafe
        assert it.get(Person) == Person(1)

    @pytest.mark.parametrize(('row', 'applied'), [((True,), True), ((False,), False)])
    def test_exec_cas(self, session, row, applied):
        session.driver.queue(['[applied]'], [row])
        q = session.named_query('INSERT INTO person (id) VALUES (:id) IF NOT EXISTS').bind(1)
        assert q.exec_cas() is applied

    def test_exec_cas_scans_current_row(self, session):
        """A rejected transaction reports the existing row"""
        session.driver.queue(['[applied]', 'id', 'first_name'], [(False, 1, 'Bob')])
        current = Person()
        q = session.named_query('INSERT INTO person (id, first_name) VALUES (:id, :first_name) IF NOT EXISTS')
        assert q.bind_struct(Person(1, 'Ada')).exec_cas(current) is False
        assert current == Person(1, 'Bob')

    def test_exec_cas_rejects_non_struct(self, session):
        session.driver.queue(['[applied]'], [(True,)])
        with pytest.raises(ShapeError):
            session.query('DELETE FROM t', []).exec_cas(42)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
