"""Tests for repository dispatch over derived queries."""

from __future__ import annotations

from typing import Any

import pytest

from ldap_query import (
    AssemblyConfig,
    CompileError,
    DerivedQuery,
    DirectoryRepository,
    EntityMetadata,
    EntityPath,
    IncorrectResultSizeError,
    ISearchExecutor,
    ParseError,
    QueryDescriptor,
    QueryParameters,
    SearchScope,
    UnsupportedFeatureError,
    build_entity_metadata,
)

OC = "(objectclass=person)(objectclass=top)"


class FakeExecutor:
    """Records descriptors and returns canned results."""

    def __init__(self, results: list[Any] | None = None) -> None:
        self.results = results if results is not None else []
        self.queries: list[QueryDescriptor] = []

    async def search(self, query: QueryDescriptor) -> list[Any]:
        self.queries.append(query)
        return list(self.results)


@pytest.fixture
def repository_class(person: EntityMetadata) -> type[DirectoryRepository]:
    class PersonRepository(DirectoryRepository):
        metadata = person

        find_by_lastname = DerivedQuery()
        find_by_lastname_and_firstname = DerivedQuery()
        by_prefix = DerivedQuery("findByFirstnameStartingWith")
        one_by_uid = DerivedQuery("findByUid", single=True)
        staff = DerivedQuery(
            "findByPhoneIsNotNull",
            params=QueryParameters(scope=SearchScope.ONE_LEVEL),
        )

    return PersonRepository


def test_executor_protocol():
    assert isinstance(FakeExecutor(), ISearchExecutor)


def test_queries_are_parsed_at_class_creation(repository_class):
    parsed = repository_class.derived_queries
    assert set(parsed) == {
        "find_by_lastname",
        "find_by_lastname_and_firstname",
        "by_prefix",
        "one_by_uid",
        "staff",
    }
    assert parsed["find_by_lastname_and_firstname"].arity == 2


def test_descriptor_defaults_to_camel_cased_attribute(repository_class):
    assert repository_class.find_by_lastname.descriptor == "findByLastname"
    assert (
        repository_class.find_by_lastname_and_firstname.descriptor
        == "findByLastnameAndFirstname"
    )


def test_unreadable_descriptor_fails_at_class_creation(person: EntityMetadata):
    with pytest.raises(ParseError):

        class Broken(DirectoryRepository):
            metadata = person
            find_by_lastnme = DerivedQuery()


def test_sorting_descriptor_fails_at_class_creation(person: EntityMetadata):
    with pytest.raises(UnsupportedFeatureError):

        class Sorted(DirectoryRepository):
            metadata = person
            q = DerivedQuery("findByLastnameOrderByFirstname")


def test_repository_requires_metadata():
    class Abstract(DirectoryRepository):
        pass

    with pytest.raises(TypeError, match="metadata"):
        Abstract(FakeExecutor())


def test_subclass_inherits_derived_queries(repository_class):
    class Extended(repository_class):
        find_by_phone = DerivedQuery()

    assert {"find_by_lastname", "find_by_phone"} <= set(Extended.derived_queries)


# -- Derived dispatch --------------------------------------------------------


@pytest.mark.asyncio
async def test_derived_query_searches(repository_class):
    executor = FakeExecutor(results=[{"uid": "jdoe"}])
    repo = repository_class(executor)
    results = await repo.find_by_lastname("Smith")
    assert results == [{"uid": "jdoe"}]
    (query,) = executor.queries
    assert query.filter == f"(&{OC}(lastname=Smith))"
    assert str(query.base) == "ou=people,dc=example,dc=com"


@pytest.mark.asyncio
async def test_derived_query_keyword_arguments(repository_class):
    executor = FakeExecutor()
    repo = repository_class(executor)
    await repo.find_by_lastname_and_firstname("Smith", firstname="John")
    assert executor.queries[0].filter == f"(&{OC}(lastname=Smith)(firstname=John))"


@pytest.mark.asyncio
async def test_derived_query_default_params(repository_class):
    executor = FakeExecutor()
    await repository_class(executor).staff()
    (query,) = executor.queries
    assert query.filter == f"(&{OC}(telephoneNumber=*))"
    assert query.scope is SearchScope.ONE_LEVEL


@pytest.mark.asyncio
async def test_derived_query_call_params(repository_class):
    executor = FakeExecutor()
    repo = repository_class(executor)
    await repo.by_prefix("Jo", params=QueryParameters(dn_values={"department": "it"}))
    (query,) = executor.queries
    assert query.filter == f"(&{OC}(firstname=Jo*))"
    assert str(query.base) == "ou=it,ou=people,dc=example,dc=com"


@pytest.mark.asyncio
async def test_single_result(repository_class):
    repo = repository_class(FakeExecutor(results=["a"]))
    assert await repo.one_by_uid("jdoe") == "a"


@pytest.mark.asyncio
async def test_single_result_none(repository_class):
    repo = repository_class(FakeExecutor())
    assert await repo.one_by_uid("jdoe") is None


@pytest.mark.asyncio
async def test_single_result_too_many(repository_class):
    repo = repository_class(FakeExecutor(results=["a", "b"]))
    with pytest.raises(IncorrectResultSizeError) as exc_info:
        await repo.one_by_uid("jdoe")
    assert exc_info.value.actual == 2


@pytest.mark.asyncio
async def test_bad_argument_fails_before_search(repository_class):
    executor = FakeExecutor()
    repo = repository_class(executor)
    with pytest.raises(CompileError):
        await repo.find_by_lastname(None)
    assert executor.queries == []


@pytest.mark.asyncio
async def test_paging_is_rejected(repository_class):
    repo = repository_class(FakeExecutor())
    with pytest.raises(UnsupportedFeatureError):
        await repo.find_by_lastname("Smith", params=QueryParameters(page=1))


# -- Typed searches ----------------------------------------------------------


@pytest.mark.asyncio
async def test_find_with_expression(repository_class, person: EntityMetadata):
    executor = FakeExecutor()
    repo = repository_class(executor)
    p = EntityPath(person)
    await repo.find(p.lastname.eq("Smith") | p.lastname.eq("Jones"))
    assert executor.queries[0].filter == (
        f"(&{OC}(|(lastname=Smith)(lastname=Jones)))"
    )


@pytest.mark.asyncio
async def test_find_all(repository_class):
    executor = FakeExecutor()
    await repository_class(executor).find_all()
    assert executor.queries[0].filter == f"(&{OC})"


@pytest.mark.asyncio
async def test_find_one_too_many(repository_class, person: EntityMetadata):
    repo = repository_class(FakeExecutor(results=[1, 2]))
    with pytest.raises(IncorrectResultSizeError):
        await repo.find_one(EntityPath(person).uid.eq("jdoe"))


@pytest.mark.asyncio
async def test_query_added_after_class_creation_raises(repository_class):
    repository_class.late = DerivedQuery("findByUid")
    repo = repository_class(FakeExecutor())
    with pytest.raises(TypeError, match="not declared in the body"):
        await repo.late("jdoe")


def test_query_for_does_not_search(repository_class):
    executor = FakeExecutor()
    repo = repository_class(
        executor, config=AssemblyConfig(default_scope=SearchScope.ONE_LEVEL)
    )
    tree = repository_class.derived_queries["find_by_lastname"].tree
    query = repo.query_for(tree, "Smith")
    assert query.scope is SearchScope.ONE_LEVEL
    assert executor.queries == []


def test_separate_entities_do_not_share_queries(repository_class):
    other = build_entity_metadata(
        {
            "name": "Group",
            "object_classes": ["groupOfNames"],
            "properties": [
                {"name": "dn", "identifier": True, "value_type": "dn"},
                {"name": "cn"},
            ],
        }
    )

    class GroupRepository(DirectoryRepository):
        metadata = other
        find_by_cn = DerivedQuery()

    assert set(GroupRepository.derived_queries) == {"find_by_cn"}
    assert "find_by_cn" not in repository_class.derived_queries
