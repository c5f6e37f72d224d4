import pytest

from tickql import Engine, Failure, Schema, Success, ValidationErrors, failure
from tickql.core.fields import field
from tickql.envelope import AttributeErrors, ErrorEntry, is_envelope

from tests.schema import schema

SIGNUP_SELECTION = """
  __typename
  ... on ValidationError {
    errors {
      fullMessages
      attributeErrors { attribute errors }
    }
  }
  ... on AuthenticatedUser {
    token
    user { id email name }
  }
"""


def _account_schema(outcome):
    s = Schema()

    @s.type
    class Account:
        id = field('ID', null=False)

    s.result_union('CreateAccountResult', success='Account')

    @s.query
    class Query:
        ping = field('String')

    @s.mutation
    class Mutation:
        create_account = field('CreateAccountResult', null=False)

        def resolve_create_account(root, info):
            return outcome

    return s


def test_full_messages_humanize_the_attribute():
    errors = ValidationErrors()
    errors.add('email', "can't be blank")
    errors.add('password_confirmation', "doesn't match Password")
    errors.add(('address', 'city'), 'is invalid')
    errors.add_base('Signups are closed')
    assert errors.full_messages == [
        "Email can't be blank",
        "Password confirmation doesn't match Password",
        'Address city is invalid',
        'Signups are closed',
    ]


def test_attribute_errors_group_in_first_seen_order():
    errors = ValidationErrors.from_dict({
        'email': ["can't be blank", 'is invalid'],
        'password': 'is too short (minimum is 6 characters)',
    })
    errors.add('email', 'has already been taken')
    assert errors.attribute_errors == [
        AttributeErrors('email', ("can't be blank", 'is invalid', 'has already been taken')),
        AttributeErrors('password', ('is too short (minimum is 6 characters)',)),
    ]
    assert errors.messages_for('password') == ['is too short (minimum is 6 characters)']
    assert len(errors) == 4
    assert list(errors)[0] == ErrorEntry('email', "can't be blank")


def test_failure_requires_errors():
    with pytest.raises(ValueError):
        Failure(ValidationErrors())
    with pytest.raises(TypeError):
        Failure(["can't be blank"])
    result = failure(('email', "can't be blank"))
    assert not result.is_success
    assert result.unwrap().full_messages == ["Email can't be blank"]
    assert Success(1).is_success and Success(1).unwrap() == 1
    assert is_envelope(result) and not is_envelope({'ok': True})


@pytest.mark.asyncio
async def test_failure_resolves_to_validation_error():
    s = _account_schema(failure(('email', "can't be blank")))
    res = await Engine(s).execute("""
    mutation {
      createAccount {
        __typename
        ... on Account { id }
        ... on ValidationError {
          errors { fullMessages attributeErrors { attribute errors } }
        }
      }
    }
    """)
    assert res.errors == []
    assert res.data == {
        'createAccount': {
            '__typename': 'ValidationError',
            'errors': {
                'fullMessages': ["Email can't be blank"],
                'attributeErrors': [{'attribute': 'email', 'errors': ["can't be blank"]}],
            },
        }
    }


@pytest.mark.asyncio
async def test_success_resolves_against_the_payload():
    s = _account_schema(Success({'id': 7}))
    res = await Engine(s).execute('mutation { createAccount { __typename ... on Account { id } } }')
    assert res.data == {'createAccount': {'__typename': 'Account', 'id': '7'}}


@pytest.mark.asyncio
async def test_non_envelope_result_is_a_field_error():
    s = _account_schema({'id': 7})
    res = await Engine(s).execute('mutation { createAccount { __typename } }')
    # createAccount is non-null, so null reaches the root
    assert res.data is None
    assert [(e.path, e.kind) for e in res.errors] == [(('createAccount',), 'invalid_result')]


@pytest.mark.asyncio
async def test_signup_with_blank_email(memory_store):
    res = await Engine(schema, memory_store).execute(
        f'mutation {{ signup(input: {{password: "secret1", passwordConfirmation: "secret1"}}) {{ {SIGNUP_SELECTION} }} }}')
    assert res.errors == []
    assert res.data['signup'] == {
        '__typename': 'ValidationError',
        'errors': {
            'fullMessages': ["Email can't be blank"],
            'attributeErrors': [{'attribute': 'email', 'errors': ["can't be blank"]}],
        },
    }
    assert set(memory_store.tables['users']) == {1, 2, 3}


@pytest.mark.asyncio
async def test_signup_password_confirmation_mismatch(memory_store):
    res = await Engine(schema, memory_store).execute("""
    mutation Signup($email: String, $pw: String, $confirm: String) {
      signup(input: {email: $email, password: $pw, passwordConfirmation: $confirm}) {
        ... on ValidationError { errors { fullMessages } }
      }
    }
    """, {'email': 'dave@example.com', 'pw': 'secret1', 'confirm': 'secret2'})
    assert res.data['signup']['errors']['fullMessages'] == [
        "Password confirmation doesn't match Password",
    ]


@pytest.mark.asyncio
async def test_signup_success_returns_authenticated_user(memory_store):
    res = await Engine(schema, memory_store).execute(f"""
    mutation {{
      signup(input: {{email: "dave@example.com", name: "Dave", password: "secret1", passwordConfirmation: "secret1"}}) {{
        {SIGNUP_SELECTION}
      }}
    }}
    """)
    assert res.errors == []
    assert res.data['signup'] == {
        '__typename': 'AuthenticatedUser',
        'token': 'token-4',
        'user': {'id': '4', 'email': 'dave@example.com', 'name': 'Dave'},
    }
    assert memory_store.tables['users'][4]['email'] == 'dave@example.com'
    # the new user was primed, not fetched
    assert memory_store.calls_for('users') == []


@pytest.mark.asyncio
async def test_signup_duplicate_email_is_a_failure(memory_store):
    res = await Engine(schema, memory_store).execute(f"""
    mutation {{
      signup(input: {{email: "alice@example.com", password: "secret1", passwordConfirmation: "secret1"}}) {{
        {SIGNUP_SELECTION}
      }}
    }}
    """)
    assert res.errors == []
    assert res.data['signup']['__typename'] == 'ValidationError'
    assert res.data['signup']['errors']['fullMessages'] == ['Email has already been taken']


ADD_REVIEW = """
mutation ($repo: ID!, $rating: ReviewRating!) {
  addReview(repoId: $repo, rating: $rating, body: "Fast") {
    __typename
    ... on Review { body rating stars user { name } }
    ... on ValidationError { errors { fullMessages } }
  }
}
"""


@pytest.mark.asyncio
async def test_add_review_with_enum_rating(memory_store):
    engine = Engine(schema, memory_store, validate_documents=True)
    res = await engine.execute(ADD_REVIEW, {'repo': '2', 'rating': 'FIVE_STARS'}, values={'current_user_id': 1})
    assert res.errors == []
    assert res.data['addReview'] == {
        '__typename': 'Review', 'body': 'Fast', 'rating': 5, 'stars': 'FIVE_STARS', 'user': {'name': 'Alice Johnson'},
    }
    assert memory_store.tables['reviews'][5]['rating'] == 5


@pytest.mark.asyncio
async def test_add_review_enum_literal_and_missing_user(memory_store):
    res = await Engine(schema, memory_store).execute(
        'mutation { addReview(repoId: 1, rating: TWO_STARS, body: "Meh") { ... on ValidationError { errors { fullMessages } } } }')
    assert res.errors == []
    assert res.data['addReview'] == {'errors': {'fullMessages': ["User can't be blank"]}}
    assert set(memory_store.tables['reviews']) == {1, 2, 3, 4}


@pytest.mark.asyncio
async def test_add_review_rejects_unknown_rating(memory_store):
    res = await Engine(schema, memory_store).execute(ADD_REVIEW, {'repo': '1', 'rating': 'TEN_STARS'},
                                                      values={'current_user_id': 1})
    assert res.data is None
    assert [(e.path, e.kind) for e in res.errors] == [(('addReview',), 'invalid_result')]
    assert 'TEN_STARS' in res.errors[0].message


@pytest.mark.asyncio
async def test_signup_input_rejects_unknown_fields(memory_store):
    res = await Engine(schema, memory_store).execute(
        'mutation { signup(input: {email: "x@example.com", nickname: "x"}) { __typename } }')
    assert res.data is None
    assert [(e.path, e.kind) for e in res.errors] == [(('signup',), 'invalid_result')]
    assert "['nickname']" in res.errors[0].message
