import pytest

from tickql import DocumentError, Engine
from tickql.document import plan_from_source
from tickql.plan import MUTATION, FieldSelection, InlineFragment, mutation, on, query, select

from tests.schema import schema


def test_plan_matches_hand_built_plan():
    plan = plan_from_source('{ r: repo(id: 1) { name ... on Repo { url } } }')
    assert plan == query(select('repo', select('name'), on('Repo', select('url')), alias='r', id=1))


def test_variables_and_defaults_are_substituted():
    source = """
    query Repo($id: ID!, $withUrl: Boolean = false) {
      repo(id: $id) { name url @include(if: $withUrl) }
    }
    """
    plan = plan_from_source(source, {'id': 3})
    assert plan.name == 'Repo'
    assert plan.selections == (
        FieldSelection('repo', arguments={'id': 3}, selections=(FieldSelection('name'),)),
    )
    plan = plan_from_source(source, {'id': 3, 'withUrl': True})
    assert [s.name for s in plan.selections[0].selections] == ['name', 'url']


def test_skip_directive_and_missing_optional_variables():
    plan = plan_from_source("""
    query ($hide: Boolean!, $first: Int) {
      repo(id: 1) {
        name @skip(if: $hide)
        reviewPage(first: $first) { totalCount }
      }
    }
    """, {'hide': True})
    repo = plan.selections[0]
    assert [s.name for s in repo.selections] == ['reviewPage']
    # an unset variable leaves the argument out
    assert repo.selections[0].arguments == {}


def test_named_fragments_become_inline_fragments():
    plan = plan_from_source("""
    query {
      repo(id: 1) { ...RepoParts }
    }
    fragment RepoParts on Repo { name events { ...ReviewParts } }
    fragment ReviewParts on Review { body }
    """)
    fragment = plan.selections[0].selections[0]
    assert isinstance(fragment, InlineFragment)
    assert fragment.type_condition == 'Repo'
    events = fragment.selections[1]
    assert events.selections == (InlineFragment('Review', (FieldSelection('body'),)),)


def test_operation_selection():
    source = """
    query One { repo(id: 1) { name } }
    mutation Two { signup(input: {email: "x@example.com"}) { __typename } }
    """
    with pytest.raises(DocumentError):
        plan_from_source(source)
    plan = plan_from_source(source, operation_name='Two')
    assert plan.operation == MUTATION
    assert plan.root_type == 'Mutation'
    assert plan.name == 'Two'
    assert plan.selections == mutation(select('signup', select('__typename'), input={'email': 'x@example.com'})).selections
    with pytest.raises(DocumentError):
        plan_from_source(source, operation_name='Three')


@pytest.mark.parametrize('source, variables', [
    ('{ repo(id: 1) { name }', None),
    ('query ($id: ID!) { repo(id: $id) { name } }', {}),
    ('{ repo(id: 1) { ...Missing } }', None),
    ('{ repo(id: 1) { ...A } } fragment A on Repo { ...A }', None),
    ('subscription { repo(id: 1) { name } }', None),
    ('fragment A on Repo { name }', None),
])
def test_invalid_documents_raise(source, variables):
    with pytest.raises(DocumentError):
        plan_from_source(source, variables)


def test_validation_against_the_schema():
    with pytest.raises(DocumentError) as exc:
        plan_from_source('{ repo(id: 1) { stars } }', schema=schema)
    assert 'stars' in str(exc.value)
    plan = plan_from_source('{ repo(id: 1) { name } }', schema=schema)
    assert plan.selections[0].name == 'repo'


@pytest.mark.asyncio
async def test_engine_executes_query_text_with_variables(memory_store):
    engine = Engine(schema, memory_store, validate_documents=True)
    res = await engine.execute("""
    query RepoWithReviews($id: ID!) {
      repo(id: $id) { name reviews { ...ReviewBody } }
    }
    fragment ReviewBody on Review { body rating }
    """, {'id': '2'})
    assert res.errors == []
    assert res.data == {'repo': {'name': 'rails', 'reviews': [{'body': 'Solid', 'rating': 4}]}}
