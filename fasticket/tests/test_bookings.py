import pytest
from sqlalchemy import update

from fasticket.app import db
from fasticket.app.bookings import service
from fasticket.app.bookings.service import CapacityBelowSold, SoldOutError, create_booking, resize_capacity
from fasticket.app.models import BOOKING_CODE_ALPHABET, Booking, Event, Profile


@pytest.fixture
def setup(make_profile, make_org):
    owner = make_profile('owner@example.com')
    buyer = make_profile('buyer@example.com')
    org_id = make_org(owner)
    return owner, buyer, org_id


def book(client, headers, event_id, quantity=None):
    payload = {'eventId': event_id}
    if quantity is not None:
        payload['quantity'] = quantity
    return client.post('/api/bookings/create', json=payload, headers=headers)


def available(app, event_id):
    with app.app_context():
        return db.session.get(Event, event_id).available_capacity


def test_book_paid_event(client, app, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=10, price='150.00')

    rv = book(client, auth_headers(buyer), event_id, quantity=3)
    assert rv.status_code == 201
    body = rv.get_json()
    assert body['success'] is True
    code = body['bookingCode']
    assert len(code) == 8 and set(code) <= set(BOOKING_CODE_ALPHABET)
    assert body['booking']['quantity'] == 3
    assert body['booking']['total_price'] == 450.0
    assert body['booking']['status'] == 'confirmed'
    assert available(app, event_id) == 7


def test_book_free_event_defaults_to_one_ticket(client, app, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=5)
    rv = book(client, auth_headers(buyer), event_id)
    assert rv.status_code == 201
    assert rv.get_json()['booking']['quantity'] == 1
    assert rv.get_json()['booking']['total_price'] == 0.0
    assert available(app, event_id) == 4


@pytest.mark.parametrize('status', ['draft', 'cancelled'])
def test_unpublished_event_not_bookable(client, app, setup, make_event, auth_headers, status):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, status=status)
    rv = book(client, auth_headers(buyer), event_id)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Event is not available for booking'
    assert available(app, event_id) == 10


def test_unknown_event(client, setup, auth_headers):
    _, buyer, _ = setup
    rv = book(client, auth_headers(buyer), 9999)
    assert rv.status_code == 404
    assert rv.get_json()['error'] == 'Event not found'


def test_sold_out_and_insufficient_seats(client, app, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    sold_out = make_event(org_id, owner, title='Sold Out', capacity=50, available=0)
    nearly = make_event(org_id, owner, title='Nearly Full', capacity=50, available=2)
    headers = auth_headers(buyer)

    rv = book(client, headers, sold_out)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Event is sold out'

    rv = book(client, headers, nearly, quantity=3)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Only 2 seats left'
    assert available(app, nearly) == 2


def test_quantity_validation(client, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=100)
    headers = auth_headers(buyer)

    rv = book(client, headers, event_id, quantity=0)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Quantity must be at least 1'

    rv = book(client, headers, event_id, quantity=11)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Quantity must be between 1 and 10'

    rv = client.post('/api/bookings/create', json={'quantity': 1}, headers=headers)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Event ID is required'


def test_booking_requires_login(client, setup, make_event):
    owner, _, org_id = setup
    event_id = make_event(org_id, owner)
    assert book(client, {}, event_id).status_code == 401


def test_one_confirmed_booking_per_event(client, app, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=10)
    headers = auth_headers(buyer)

    first = book(client, headers, event_id)
    assert first.status_code == 201
    rv = book(client, headers, event_id)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'You already have a booking for this event'
    assert available(app, event_id) == 9

    # after cancelling the attendee may book again
    booking_id = first.get_json()['booking']['id']
    assert client.post(f'/api/bookings/{booking_id}/cancel', headers=headers).status_code == 200
    assert book(client, headers, event_id, quantity=2).status_code == 201
    assert available(app, event_id) == 8


def test_last_seat_goes_to_exactly_one_attendee(client, app, setup, make_profile, make_event, auth_headers):
    owner, buyer, org_id = setup
    second = make_profile('second@example.com')
    event_id = make_event(org_id, owner, capacity=1)

    assert book(client, auth_headers(buyer), event_id).status_code == 201
    rv = book(client, auth_headers(second), event_id)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Event is sold out'
    assert available(app, event_id) == 0
    with app.app_context():
        assert Booking.query.filter_by(event_id=event_id).count() == 1


def test_conditional_decrement_refuses_stale_capacity(app, setup, make_event):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=1)
    with app.app_context():
        event = db.session.get(Event, event_id)
        assert event.available_capacity == 1
        # another transaction takes the last seat after the row was read
        db.session.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(available_capacity=0)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(SoldOutError):
            create_booking(db.session.get(Profile, buyer), event_id, 1)
        assert Booking.query.count() == 0


def test_cancel_restores_capacity(client, app, setup, make_profile, make_event, auth_headers):
    owner, buyer, org_id = setup
    stranger = make_profile('stranger@example.com')
    event_id = make_event(org_id, owner, capacity=10)
    headers = auth_headers(buyer)
    booking_id = book(client, headers, event_id, quantity=4).get_json()['booking']['id']
    assert available(app, event_id) == 6

    rv = client.post(f'/api/bookings/{booking_id}/cancel', headers=auth_headers(stranger))
    assert rv.status_code == 404
    assert rv.get_json()['error'] == 'Booking not found'

    rv = client.post(f'/api/bookings/{booking_id}/cancel', headers=headers)
    assert rv.status_code == 200
    assert rv.get_json()['booking']['status'] == 'cancelled'
    assert rv.get_json()['booking']['cancelled_at'] is not None
    assert available(app, event_id) == 10

    rv = client.post(f'/api/bookings/{booking_id}/cancel', headers=headers)
    assert rv.status_code == 400
    assert rv.get_json()['error'] == 'Booking is already cancelled'
    assert available(app, event_id) == 10


def test_cancel_never_exceeds_total_capacity(client, app, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=10)
    headers = auth_headers(buyer)
    booking_id = book(client, headers, event_id, quantity=3).get_json()['booking']['id']
    # capacity was topped up behind the booking's back
    with app.app_context():
        db.session.get(Event, event_id).available_capacity = 9
        db.session.commit()

    assert client.post(f'/api/bookings/{booking_id}/cancel', headers=headers).status_code == 200
    assert available(app, event_id) == 10


def test_my_bookings_and_ticket_lookup(client, setup, make_profile, make_event, auth_headers):
    owner, buyer, org_id = setup
    stranger = make_profile('stranger@example.com')
    first = make_event(org_id, owner, title='First Show')
    second = make_event(org_id, owner, title='Second Show')
    headers = auth_headers(buyer)
    code = book(client, headers, first).get_json()['bookingCode']
    book(client, headers, second)

    rows = client.get('/api/bookings', headers=headers).get_json()
    assert sorted(r['event']['title'] for r in rows) == ['First Show', 'Second Show']
    assert client.get('/api/bookings', headers=auth_headers(stranger)).get_json() == []

    rv = client.get(f'/api/bookings/{code.lower()}', headers=headers)
    assert rv.status_code == 200
    assert rv.get_json()['event']['title'] == 'First Show'
    assert client.get(f'/api/bookings/{code}', headers=auth_headers(stranger)).status_code == 404


def test_my_booking_for_event(client, setup, make_event, auth_headers):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner)
    headers = auth_headers(buyer)

    assert client.get(f'/api/events/{event_id}/my-booking', headers=headers).get_json() == {
        'booked': False, 'booking': None
    }
    code = book(client, headers, event_id).get_json()['bookingCode']
    body = client.get(f'/api/events/{event_id}/my-booking', headers=headers).get_json()
    assert body['booked'] is True
    assert body['booking']['booking_code'] == code


def test_resize_keeps_seats_booked_after_load(app, setup, make_event):
    owner, _, org_id = setup
    event_id = make_event(org_id, owner, capacity=10)
    with app.app_context():
        event = db.session.get(Event, event_id)
        assert event.sold_capacity == 0
        # a one-seat booking commits after the row was read
        db.session.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(available_capacity=Event.available_capacity - 1)
            .execution_options(synchronize_session=False)
        )
        resize_capacity(event, 20)
        db.session.commit()
        event = db.session.get(Event, event_id)
        assert (event.total_capacity, event.available_capacity) == (20, 19)


def test_resize_below_seats_sold_after_load(app, setup, make_event):
    owner, _, org_id = setup
    event_id = make_event(org_id, owner, capacity=10)
    with app.app_context():
        event = db.session.get(Event, event_id)
        db.session.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(available_capacity=5)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(CapacityBelowSold) as excinfo:
            resize_capacity(event, 3)
        assert excinfo.value.sold == 5
        db.session.rollback()


def test_store_error_during_booking_returns_500(client, app, setup, make_event, auth_headers, monkeypatch, caplog):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=10)
    headers = auth_headers(buyer)
    # the seats are decremented first, then inserting the booking fails
    monkeypatch.setattr(service, 'find_confirmed_booking', lambda event_id, user_id: None)
    with app.app_context():
        Booking.__table__.drop(db.engine)

    rv = book(client, headers, event_id, quantity=2)
    assert rv.status_code == 500
    assert rv.get_json()['error'] == 'Failed to create booking'
    assert available(app, event_id) == 10
    assert any('Booking error' in r.getMessage() for r in caplog.records)


def test_store_error_during_cancel_returns_500(client, app, setup, make_event, auth_headers, caplog):
    owner, buyer, org_id = setup
    event_id = make_event(org_id, owner, capacity=10)
    headers = auth_headers(buyer)
    booking_id = book(client, headers, event_id).get_json()['booking']['id']
    with app.app_context():
        Event.__table__.drop(db.engine)

    rv = client.post(f'/api/bookings/{booking_id}/cancel', headers=headers)
    assert rv.status_code == 500
    assert rv.get_json()['error'] == 'Failed to cancel booking'
    with app.app_context():
        assert db.session.get(Booking, booking_id).status == 'confirmed'
    assert any('Booking cancel failed' in r.getMessage() for r in caplog.records)


def test_booking_code_collision_is_retried(client, app, setup, make_event, auth_headers, monkeypatch):
    owner, buyer, org_id = setup
    other_event = make_event(org_id, owner, title='Other Show')
    event_id = make_event(org_id, owner, capacity=10)
    with app.app_context():
        db.session.add(Booking(event_id=other_event, user_id=owner, booking_code='AAAAAAAA'))
        db.session.commit()
    # the first code is taken by the time the insert runs
    codes = iter(['AAAAAAAA', 'BBBBBBBB'])
    monkeypatch.setattr(service, '_unused_booking_code', lambda: next(codes))

    rv = book(client, auth_headers(buyer), event_id, quantity=3)
    assert rv.status_code == 201
    assert rv.get_json()['bookingCode'] == 'BBBBBBBB'
    assert available(app, event_id) == 7
    with app.app_context():
        assert Booking.query.filter_by(event_id=event_id).count() == 1
