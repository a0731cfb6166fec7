from fasticket.app import db
from fasticket.app.models import Profile


def register(client, email='t@example.com', password='secret123', fullname='Tester'):
    return client.post('/auth/register', json={'email': email, 'password': password, 'fullname': fullname})


def test_register_and_login(client, app):
    rv = register(client, email='Tester@Example.com')
    assert rv.status_code == 201
    assert rv.get_json()['profile']['email'] == 'tester@example.com'

    rv = client.post('/auth/login', json={'email': 'tester@example.com', 'password': 'secret123'})
    assert rv.status_code == 200
    body = rv.get_json()
    assert body['token_type'] == 'bearer'
    assert body['access_token']

    # the bearer token works without the session cookie
    other = app.test_client()
    rv = other.get('/auth/me', headers={'Authorization': f"Bearer {body['access_token']}"})
    assert rv.status_code == 200
    assert rv.get_json()['email'] == 'tester@example.com'

    with app.app_context():
        profile = Profile.query.filter_by(email='tester@example.com').one()
        assert profile.password_hash != 'secret123'


def test_register_duplicate_email(client):
    assert register(client).status_code == 201
    rv = register(client, email='T@example.com')
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Email is already registered'


def test_register_validation(client):
    rv = register(client, password='short')
    assert rv.status_code == 400
    rv = register(client, email='not-an-email')
    assert rv.status_code == 400
    rv = client.post('/auth/register', data='not json', content_type='text/plain')
    assert rv.status_code == 400


def test_login_wrong_password(client, make_profile):
    make_profile('owner@example.com')
    rv = client.post('/auth/login', json={'email': 'owner@example.com', 'password': 'wrong-password'})
    assert rv.status_code == 401
    assert rv.get_json()['error'] == 'Invalid email or password'
    rv = client.post('/auth/login', json={'email': 'nobody@example.com', 'password': 'secret123'})
    assert rv.status_code == 401


def test_session_login_and_sign_out(client, make_profile):
    make_profile('owner@example.com')
    rv = client.post('/auth/login', json={'email': 'owner@example.com', 'password': 'secret123'})
    assert rv.status_code == 200
    assert client.get('/auth/me').status_code == 200

    assert client.post('/auth/sign-out').status_code == 200
    rv = client.get('/auth/me')
    assert rv.status_code == 401
    assert rv.get_json() == {'error': 'Unauthorized'}


def test_unauthenticated_and_bad_token(client):
    assert client.get('/api/profile').status_code == 401
    rv = client.get('/api/profile', headers={'Authorization': 'Bearer not-a-token'})
    assert rv.status_code == 401
    rv = client.get('/api/profile', headers={'Authorization': 'Basic abc'})
    assert rv.status_code == 401


def test_token_for_deleted_profile_is_rejected(client, app, make_profile, auth_headers):
    pid = make_profile('gone@example.com')
    headers = auth_headers(pid)
    with app.app_context():
        db.session.delete(db.session.get(Profile, pid))
        db.session.commit()
    assert client.get('/auth/me', headers=headers).status_code == 401


def test_set_language(client):
    rv = client.post('/set-language', json={'lang': 'tr'})
    assert rv.status_code == 200
    with client.session_transaction() as sess:
        assert sess['lang'] == 'tr'
    rv = client.post('/set-language', json={'lang': 'fr'})
    assert rv.status_code == 400


def test_health_and_unknown_route(client):
    rv = client.get('/health')
    assert rv.status_code == 200
    assert rv.data == b'OK'
    rv = client.get('/api/does-not-exist')
    assert rv.status_code == 404
    assert 'error' in rv.get_json()
