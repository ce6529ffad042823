from app import Assessment

PAYLOAD = {
    'location': {'latitude': 13.0827, 'longitude': 80.2707,
                 'address': 'Anna Nagar, Chennai, Tamil Nadu, India'},
    'roofArea': 120,
    'roofType': 'concrete',
    'waterDemand': 400,
    'userName': 'Priya',
    'userEmail': 'priya@example.com',
    'user_id': 'u-1',
}
NEIGHBORHOOD = 'anna-nagar-chennai-tamil-nadu'


def create(client, **overrides):
    response = client.post('/api/assessments', json={**PAYLOAD, **overrides})
    assert response.status_code == 201
    return response.get_json()


def test_health(client):
    assert client.get('/api/health').get_json()['status'] == 'ok'


def test_create_and_fetch_assessment(client):
    created = create(client)

    assert created['success'] is True
    record = created['data']
    assert record['neighborhood_id'] == NEIGHBORHOOD
    assert record['harvest']['annual'] == created['result']['harvest']['annual']
    assert record['sustainability_score'] == created['result']['score']

    fetched = client.get(f"/api/assessments/{record['id']}").get_json()
    assert fetched['data']['user_name'] == 'Priya'
    assert fetched['data']['location']['latitude'] == 13.0827

    listing = client.get('/api/assessments').get_json()
    assert listing['count'] == 1


def test_invalid_submission_is_400(client):
    response = client.post('/api/assessments', json={'roofArea': 100})

    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert Assessment.query.count() == 0


def test_missing_body_is_400(client):
    response = client.post('/api/calculate', data='not json', content_type='text/plain')

    assert response.status_code == 400


def test_unknown_assessment_is_404_json(client):
    response = client.get('/api/assessments/999')

    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': 'Assessment not found'}


def test_calculate_does_not_store(client):
    response = client.post('/api/calculate', json=PAYLOAD)

    assert response.status_code == 200
    assert response.get_json()['data']['system']['size'] == 'medium'
    assert Assessment.query.count() == 0


def test_climate_lookup(client):
    response = client.get('/api/climate?lat=13.0827&lon=80.2707')

    assert response.get_json()['data']['source'] == 'city_database'
    assert client.get('/api/climate?lat=13').status_code == 400


def test_report_download(client):
    assessment_id = create(client)['data']['id']

    response = client.get(f'/api/assessments/{assessment_id}/report')

    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data.startswith(b'%PDF')
    assert f'RWH_Report_{assessment_id}.pdf' in response.headers['Content-Disposition']


def test_community_leaderboard(client):
    create(client)
    create(client, user_id='u-2', userName='Arjun', roofArea=300)

    board = client.get(f'/api/community/leaderboard?neighborhoodId={NEIGHBORHOOD}&userId=u-1').get_json()

    assert board['total_participants'] == 2
    assert [n['rank'] for n in board['neighbors']] == [1, 2]
    assert board['neighbors'][0]['name'] == 'Arjun'
    assert board['neighbors'][1]['name'] == 'You (Priya)'
    assert board['user_position'] == 2


def test_community_impact_for_empty_neighbourhood_shows_demo_data(client):
    impact = client.get('/api/community/impact?neighborhoodId=nowhere').get_json()

    assert impact['placeholder'] is True
    assert impact['user_rank'] == 3
    assert 'neighbors' not in impact

    board = client.get('/api/community/leaderboard?neighborhoodId=nowhere').get_json()
    assert board['total_participants'] == 8


def test_community_empty_state_on_request(client):
    impact = client.get('/api/community/impact?neighborhoodId=nowhere&placeholder=false').get_json()

    assert impact['placeholder'] is False
    assert impact['total_participants'] == 0
    assert impact['user_rank'] is None


def test_share_message(client):
    create(client)

    messages = client.get(f'/api/community/share-message?neighborhoodId={NEIGHBORHOOD}&userId=u-1').get_json()

    assert '#1' in messages['twitter']


def test_join_challenge(client):
    response = client.post('/api/community/challenge', json={'challengeId': 2})

    assert response.get_json()['challenge']['name'] == 'Neighbor Helper'
    assert client.post('/api/community/challenge', json={'challengeId': 9}).status_code == 404


def test_sustainability_tracker_flow(client):
    response = client.post('/api/sustainability/user/u-1/activity', json={'liters': 3500})
    assert response.get_json()['trees_sponsored'] == 1

    assert client.post('/api/sustainability/user/u-1/activity', json={'liters': -1}).status_code == 400

    dashboard = client.get('/api/sustainability/user/u-1/dashboard').get_json()
    assert dashboard['tracker']['lifetime_water_saved'] == 3500
    assert len(dashboard['activities']) == 1

    badges = client.get('/api/sustainability/user/u-1/badges').get_json()
    assert [b['earned'] for b in badges] == [True, False, False, False, False]

    milestones = client.get('/api/sustainability/user/u-1/milestones').get_json()
    assert milestones[0]['achieved'] is True

    trees = client.get('/api/sustainability/user/u-1/trees').get_json()
    assert trees['liters_to_next_tree'] == 2500

    client.post('/api/sustainability/user/u-1/reset')
    assert client.get('/api/sustainability/user/u-1').get_json()['lifetime_water_saved'] == 0


def test_admin_routes_need_login(client):
    assert client.get('/admin/dashboard').status_code == 401
    assert client.get('/admin/export/assessments').status_code == 401


def test_admin_login_rejects_bad_password(client, admin):
    response = client.post('/admin/login', json={'username': 'admin', 'password': 'wrong'})

    assert response.status_code == 401


def test_admin_dashboard_and_search(admin_client):
    create(admin_client)
    create(admin_client, userName='Arjun', location={'latitude': 19.076, 'longitude': 72.8777,
                                                     'address': 'Bandra, Mumbai, Maharashtra'})

    dashboard = admin_client.get('/admin/dashboard').get_json()
    assert dashboard['total_assessments'] == 2
    assert len(dashboard['popular_neighborhoods']) == 2

    found = admin_client.get('/admin/assessments?search=Arjun').get_json()
    assert found['total'] == 1
    assert found['data'][0]['user_name'] == 'Arjun'

    analytics = admin_client.get('/admin/analytics').get_json()
    assert analytics['roof_types'] == {'concrete': 2}


def test_admin_export_and_delete(admin_client):
    assessment_id = create(admin_client)['data']['id']

    export = admin_client.get('/admin/export/assessments')
    assert export.mimetype == 'text/csv'
    lines = export.data.decode().strip().splitlines()
    assert lines[0].startswith('ID,Name,Email')
    assert len(lines) == 2

    assert admin_client.delete(f'/admin/assessments/{assessment_id}').status_code == 200
    assert admin_client.get(f'/api/assessments/{assessment_id}').status_code == 404


def test_admin_logout(admin_client):
    assert admin_client.get('/admin/logout').status_code == 200
    assert admin_client.get('/admin/dashboard').status_code == 401


def test_calculate_with_huge_roof_area(client):
    response = client.post('/api/calculate', json={**PAYLOAD, 'roofArea': 1e308})

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['system']['size'] == 'large'
    assert data['costs']['net_cost'] == data['costs']['total'] - data['costs']['subsidy']


def test_activity_with_infinite_liters_is_400(client):
    response = client.post('/api/sustainability/user/u-1/activity',
                           data='{"liters": Infinity}', content_type='application/json')

    assert response.status_code == 400
    assert response.get_json()['success'] is False
