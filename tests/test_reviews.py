import pytest

from conftest import CUSTOM_API, SYNC_KEY, FakeResponse, json_response
from tour_gateway.providers.base import FailureKind, ProviderError, Success
from tour_gateway.providers.serpapi_provider import SerpApiReviewProvider, transform_review

SERPAPI_PAYLOAD = {
    'business_name': 'Qualitour',
    'rating': 4.8,
    'review_count': 120,
    'reviews': [
        {'reviewer': 'Ann', 'rating': 5, 'review': 'Short', 'review_text': 'Wonderful trip',
         'review_datetime_utc': '2024-03-01T12:00:00Z'},
        {'reviewer': 'Bo', 'rating': 4, 'review': 'Good guide'},
        {'user': {'name': 'Cy', 'link': 'https://maps.example/cy'}, 'rating': 3, 'snippet': 'Okay',
         'iso_date': '2024-02-01T00:00:00Z', 'date': 'a month ago'},
    ],
}


def serp_and_cms(serp=SERPAPI_PAYLOAD, cms_status=200, stored=()):
    def handler(method, url, kwargs):
        if url.startswith('https://serpapi.com'):
            return json_response(serp)
        if url.endswith('/google-reviews'):
            return json_response(list(stored))
        return json_response({'saved': True}, status=cms_status)
    return handler


def test_transform_review_prefers_review_text():
    review = transform_review(SERPAPI_PAYLOAD['reviews'][0])
    assert review.author_name == 'Ann'
    assert review.text == 'Wonderful trip'
    assert review.rating == 5.0
    assert review.time == 1709294400.0
    assert review.language == 'en'


def test_transform_review_fallbacks():
    bare = transform_review({})
    assert bare.author_name == 'Anonymous'
    assert bare.text == ''
    assert bare.relative_time_description == 'Recently'
    assert bare.time > 0

    nested = transform_review(SERPAPI_PAYLOAD['reviews'][2])
    assert nested.author_name == 'Cy'
    assert nested.author_url == 'https://maps.example/cy'
    assert nested.text == 'Okay'
    assert nested.relative_time_description == 'a month ago'


@pytest.mark.asyncio
async def test_fetch_reviews_query(config, make_sessions):
    sessions = make_sessions(serp_and_cms())
    provider = SerpApiReviewProvider(config, sessions)

    result = await provider.fetch_reviews()
    assert result.value['business_name'] == 'Qualitour'
    params = sessions._session.calls[0][2]['params']
    assert params['engine'] == 'google_maps_reviews'
    assert params['place_id'] == config.reviews_config.place_id
    assert params['api_key'] == 'test-serpapi-key'


@pytest.mark.asyncio
async def test_fetch_reviews_without_key(gateway_env, make_sessions):
    from tour_gateway.config import Config
    gateway_env.delenv('SERPAPI_KEY')
    sessions = make_sessions(serp_and_cms())
    provider = SerpApiReviewProvider(Config(), sessions)

    result = await provider.fetch_reviews()
    assert result.kind is FailureKind.NOT_CONFIGURED
    assert sessions._session.calls == []


@pytest.mark.asyncio
async def test_sync_reviews_pushes_transformed(config, make_sessions):
    sessions = make_sessions(serp_and_cms())
    provider = SerpApiReviewProvider(config, sessions)

    result = await provider.sync_reviews(SYNC_KEY)
    assert isinstance(result, Success)
    assert result.value['count'] == 3
    method, url, kwargs = sessions._session.calls[1]
    assert (method, url) == ('POST', f"{CUSTOM_API}/google-reviews/sync")
    assert kwargs['params'] == {'key': SYNC_KEY}
    assert [r['author_name'] for r in kwargs['json']['reviews']] == ['Ann', 'Bo', 'Cy']


@pytest.mark.asyncio
async def test_sync_target_required(gateway_env, make_sessions):
    from tour_gateway.config import Config
    gateway_env.delenv('WORDPRESS_API_URL')
    provider = SerpApiReviewProvider(Config(), make_sessions(serp_and_cms()))
    with pytest.raises(ProviderError):
        await provider.clear_reviews(SYNC_KEY)


@pytest.mark.asyncio
async def test_public_reviews_endpoint(make_app):
    stored = [{'author_name': 'Ann', 'rating': 5, 'text': 'Great', 'time': 1},
              {'author_name': 'Bo', 'rating': 3, 'text': 'Fine', 'time': 2}]
    app, _ = make_app(serp_and_cms(stored=stored))

    async with app.test_app() as test_app:
        resp = await test_app.test_client().get('/api/reviews')

    data = await resp.get_json()
    assert resp.status_code == 200
    assert data['rating'] == 4.0
    assert data['user_ratings_total'] == 2


@pytest.mark.asyncio
async def test_public_reviews_null_on_failure_or_empty(make_app):
    for handler in (lambda m, u, k: FakeResponse(500, text='down'), serp_and_cms(stored=[])):
        app, _ = make_app(handler)
        async with app.test_app() as test_app:
            resp = await test_app.test_client().get('/api/reviews')
        assert resp.status_code == 200
        assert await resp.get_json() is None


@pytest.mark.asyncio
async def test_sync_status_and_fetch(make_app):
    stored = [{'author_name': f"R{i}", 'rating': 5, 'text': '', 'time': i} for i in range(8)]
    app, _ = make_app(serp_and_cms(stored=stored))

    async with app.test_app() as test_app:
        client = test_app.test_client()
        status = await (await client.get('/api/reviews/sync')).get_json()
        fetched = await (await client.get('/api/reviews/sync?action=fetch')).get_json()
        unknown = await client.get('/api/reviews/sync?action=explode')

    assert status['source'] == 'wordpress'
    assert status['reviews_count'] == 8
    assert status['cached'] is True
    assert len(status['reviews']) == 5
    assert fetched['business'] == {'name': 'Qualitour', 'rating': 4.8, 'total_reviews': 120}
    assert len(fetched['sample']) == 3
    assert unknown.status_code == 400


@pytest.mark.asyncio
async def test_sync_rejects_bad_key(make_app):
    app, session = make_app(serp_and_cms())

    async with app.test_app() as test_app:
        client = test_app.test_client()
        post = await client.post('/api/reviews/sync', json={'action': 'sync', 'key': 'guess'})
        missing = await client.post('/api/reviews/sync', json={'action': 'sync'})
        delete = await client.delete('/api/reviews/sync', json={'key': 'guess'})

    for resp in (post, missing, delete):
        assert resp.status_code == 401
        assert await resp.get_json() == {'error': 'Unauthorized'}
    assert session.calls == []


@pytest.mark.asyncio
async def test_sync_with_valid_key(make_app):
    app, session = make_app(serp_and_cms())

    async with app.test_app() as test_app:
        client = test_app.test_client()
        resp = await client.post('/api/reviews/sync', json={'action': 'sync', 'key': SYNC_KEY})
        unknown = await client.post('/api/reviews/sync', json={'action': 'rewind', 'key': SYNC_KEY})

    data = await resp.get_json()
    assert resp.status_code == 200
    assert data['message'] == 'Synced 3 reviews to WordPress'
    assert data['details'] == {'saved': True}
    assert unknown.status_code == 400


@pytest.mark.asyncio
async def test_sync_failure_reports_details(make_app):
    app, _ = make_app(serp_and_cms(cms_status=500))

    async with app.test_app() as test_app:
        resp = await test_app.test_client().post('/api/reviews/sync', json={'action': 'sync', 'key': SYNC_KEY})

    assert resp.status_code == 500
    data = await resp.get_json()
    assert data['error'] == 'Sync failed'
    assert 'details' in data


@pytest.mark.asyncio
async def test_clear_reviews(make_app):
    app, session = make_app(serp_and_cms())

    async with app.test_app() as test_app:
        resp = await test_app.test_client().delete('/api/reviews/sync', json={'key': SYNC_KEY})

    assert resp.status_code == 200
    method, url, kwargs = session.calls[0]
    assert (method, url) == ('DELETE', f"{CUSTOM_API}/google-reviews/clear")
    assert kwargs['params'] == {'key': SYNC_KEY}


@pytest.mark.asyncio
async def test_sync_non_object_bodies_are_unauthorized(make_app):
    app, session = make_app(serp_and_cms())

    async with app.test_app() as test_app:
        client = test_app.test_client()
        listed = await client.post('/api/reviews/sync', json=['sync', SYNC_KEY])
        text = await client.delete('/api/reviews/sync', json=SYNC_KEY)

    assert listed.status_code == 401
    assert text.status_code == 401
    assert session.calls == []
