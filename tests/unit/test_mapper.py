"""Unit tests for dataclass field mapping.

Tests the public API:
- Mapper.type_map / field_map - Name tables per type
- Mapper.traversals_by_name / traversals_by_name_func - Ordered resolution
- get_by_traversal / set_by_traversal - Reading and writing through traversals
- snake_case - Default naming convention
- set_default_mapper - Swapping the process-wide mapper
"""
import logging
import threading
from dataclasses import dataclass, field

import pytest
from cqlbind.exceptions import ShapeError
from cqlbind.mapper import Mapper, default_mapper, get_by_traversal
from cqlbind.mapper import set_by_traversal, set_default_mapper, snake_case
from cqlbind.reflect import UDT, new_instance


@dataclass
class Audit:
    created_by: str = ''
    updated_by: str = ''


@dataclass
class Coords:
    lat: float = 0.0
    lon: float = 0.0


@dataclass
class Address(UDT):
    street: str = ''
    number: int = 0


@dataclass
class Person:
    first_name: str
    last_name: str = field(default='', metadata={'db': 'surname'})
    secret: str = field(default='', metadata={'db': '-'})
    audit: Audit = field(default=None, metadata={'embed': True})
    location: Coords | None = None
    address: Address | None = None


@dataclass
class Shadowed:
    created_by: str = ''
    audit: Audit = field(default=None, metadata={'embed': True})


@dataclass
class Node:
    value: int = 0
    parent: 'Node | None' = None


class TestSnakeCase:

    @pytest.mark.parametrize(('name', 'expected'), [
        ('FirstName', 'first_name'),
        ('firstName', 'first_name'),
        ('HTTPServer', 'http_server'),
        ('userID', 'user_id'),
        ('already_snake', 'already_snake'),
        ('A', 'a'),
    ])
    def test_snake_case(self, name, expected):
        assert snake_case(name) == expected


class TestTypeMap:
    """Name resolution rules."""

    def test_tagged_and_default_names(self):
        """Tags override the naming function, '-' skips the field"""
        names = Mapper().field_map(Person)
        assert 'first_name' in names
        assert 'surname' in names
        assert 'last_name' not in names
        assert 'secret' not in names

    def test_embedded_fields_are_flattened(self):
        """Embedded dataclass fields resolve as if declared on the parent"""
        tm = Mapper().type_map(Person)
        assert tm.traversal('created_by') == ('audit', 'created_by')
        assert tm.traversal('updated_by') == ('audit', 'updated_by')
        assert tm.traversal('audit') == ()

    def test_nested_fields_are_prefixed(self):
        """Non-embedded dataclass fields map whole and by dotted sub-name"""
        tm = Mapper().type_map(Person)
        assert tm.traversal('location') == ('location',)
        assert tm.traversal('location.lat') == ('location', 'lat')

    def test_udt_fields_are_not_descended(self):
        """UDT-typed fields map as one value"""
        tm = Mapper().type_map(Person)
        assert tm.traversal('address') == ('address',)
        assert tm.traversal('address.street') == ()

    def test_shallowest_field_wins(self):
        """A parent field shadows an embedded field of the same name"""
        tm = Mapper().type_map(Shadowed)
        assert tm.traversal('created_by') == ('created_by',)
        assert tm.traversal('updated_by') == ('audit', 'updated_by')

    def test_self_referencing_type(self):
        """Recursive types are not expanded endlessly"""
        tm = Mapper().type_map(Node)
        assert tm.traversal('parent') == ('parent',)
        assert tm.traversal('parent.value') == ()

    def test_custom_tag_and_name_func(self):
        """A mapper reads its own tag and naming function"""

        @dataclass
        class Row:
            UserName: str = field(default='', metadata={'cql': 'login'})
            FullName: str = ''

        mapper = Mapper(tag_name='cql', name_func=str.lower)
        names = mapper.field_map(Row)
        assert set(names) == {'login', 'fullname'}
        assert mapper.tag_name == 'cql'
        assert mapper.name_func is str.lower

    def test_instance_and_type_share_table(self):
        """field_map accepts instances and returns the type's table"""
        mapper = Mapper()
        assert mapper.field_map(Person('a')) is mapper.field_map(Person)

    def test_type_map_is_read_only(self):
        """Published tables cannot be modified"""
        names = Mapper().field_map(Person)
        with pytest.raises(TypeError):
            names['new'] = None

    def test_non_dataclass_rejected(self):
        with pytest.raises(ShapeError, match='expected a dataclass but got int'):
            Mapper().type_map(int)

    def test_config_is_read_only(self):
        """Mapper configuration cannot be changed after construction"""
        mapper = Mapper()
        with pytest.raises(AttributeError):
            mapper.tag_name = 'cql'


class TestTraversals:

    def test_traversals_by_name_preserves_order_and_length(self):
        """Unknown names yield empty traversals in place"""
        traversals = Mapper().traversals_by_name(
            Person, ['surname', 'unknown', 'first_name', 'created_by'])
        assert traversals == [('last_name',), (), ('first_name',), ('audit', 'created_by')]

    def test_traversals_by_name_func(self):
        """The callback sees every index and traversal in order"""
        seen = []
        Mapper().traversals_by_name_func(Person, ['first_name', 'nope'],
                                         lambda i, t: seen.append((i, t)))
        assert seen == [(0, ('first_name',)), (1, ())]

    def test_traversals_by_name_func_stops_on_error(self):
        """An exception from the callback stops iteration and propagates"""
        seen = []

        def fn(i, traversal):
            seen.append(i)
            if not traversal:
                raise KeyError(i)

        with pytest.raises(KeyError):
            Mapper().traversals_by_name_func(Person, ['first_name', 'nope', 'surname'], fn)
        assert seen == [0, 1]

    def test_get_by_traversal(self):
        person = Person('Ada', 'Lovelace', audit=Audit('root'))
        assert get_by_traversal(person, ('audit', 'created_by')) == 'root'

    def test_get_by_traversal_missing_intermediate(self):
        """A None intermediate yields None"""
        assert get_by_traversal(Person('Ada'), ('audit', 'created_by')) is None

    def test_set_by_traversal_allocates_intermediates(self):
        """Missing embedded instances are created on write"""
        mapper = Mapper()
        person = new_instance(Person)
        set_by_traversal(person, mapper.field_map(Person)['created_by'], 'root')
        assert isinstance(person.audit, Audit)
        assert person.audit.created_by == 'root'
        assert person.audit.updated_by == ''

    def test_bind_matches_lookup(self):
        """Values read through traversals equal the attribute values"""
        person = Person('Ada', 'Lovelace', audit=Audit('root', 'admin'), location=Coords(1.5, 2.5))
        mapper = Mapper()
        names = ['first_name', 'surname', 'created_by', 'updated_by', 'location.lon']
        values = [get_by_traversal(person, t) for t in mapper.traversals_by_name(Person, names)]
        assert values == ['Ada', 'Lovelace', 'root', 'admin', 2.5]


class TestCaching:
    """Build-once caching per mapper and type."""

    def test_cache_idempotence(self):
        """Repeated lookups return the same published table"""
        mapper = Mapper()
        first = mapper.type_map(Person)
        assert mapper.type_map(Person) is first
        assert mapper.is_cached(Person)
        assert mapper.cached_types == 1

    def test_separate_mappers_separate_caches(self):
        one, two = Mapper(), Mapper()
        assert one.type_map(Person) is not two.type_map(Person)

    def test_concurrent_first_access_builds_once(self, monkeypatch):
        """Concurrent first access publishes a single table"""
        mapper = Mapper()
        builds = []
        original = Mapper._build

        def counting_build(self, cls):
            builds.append(cls)
            return original(self, cls)

        monkeypatch.setattr(Mapper, '_build', counting_build)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(mapper.type_map(Person))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert builds == [Person]
        assert all(r is results[0] for r in results)

    def test_clear(self):
        mapper = Mapper()
        mapper.type_map(Person)
        mapper.clear()
        assert not mapper.is_cached(Person)


class TestDefaultMapper:

    def test_set_default_mapper_returns_previous(self):
        original = default_mapper()
        replacement = Mapper(name_func=str.lower)
        assert set_default_mapper(replacement) is original
        assert default_mapper() is replacement

    def test_replacing_populated_default_warns(self, caplog):
        """Swapping a mapper with cached types is logged"""
        default_mapper().type_map(Person)
        with caplog.at_level(logging.WARNING, logger='cqlbind.mapper'):
            set_default_mapper(Mapper())
        assert 'cached types' in caplog.text


if __name__ == '__main__':
    __import__('pytest').main([__file__])
