"""
Unit Tests for Private League API Endpoints
"""
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.models.user import UserTier, UserSubscriptionStatus

LEAGUES = '/api/v1/private-leagues'


@pytest.fixture
async def friend_headers(user_factory, make_headers):
    """A second premium user"""
    friend = await user_factory(tier=UserTier.PREMIUM, subscription_status=UserSubscriptionStatus.ACTIVE)
    return make_headers(friend)


@pytest.fixture
async def league(client: AsyncClient, premium_headers):
    response = await client.post(LEAGUES, headers=premium_headers, json={'name': 'Staff Room'})
    return response.json()


class TestPremiumGate:

    @pytest.mark.asyncio
    async def test_free_user_forbidden(self, client: AsyncClient, auth_headers):
        response = await client.get(LEAGUES, headers=auth_headers)

        assert response.status_code == 403
        assert 'premium' in response.json()['detail']

    @pytest.mark.asyncio
    async def test_anonymous(self, client: AsyncClient):
        response = await client.post(LEAGUES, json={'name': 'Staff Room'})

        assert response.status_code == 401


class TestLeagueLifecycle:

    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient, premium_headers):
        first = await client.post(LEAGUES, headers=premium_headers, json={'name': 'Staff Room'})
        second = await client.post(LEAGUES, headers=premium_headers, json={'name': 'Pub Team'})

        assert first.status_code == 201
        data = first.json()
        assert data['member_count'] == 1
        assert data['is_creator'] is True
        assert data['max_members'] == settings.LEAGUE_DEFAULT_MAX_MEMBERS
        assert len(data['invite_code']) == settings.INVITE_CODE_LENGTH
        assert data['invite_code'] != second.json()['invite_code']

    @pytest.mark.asyncio
    async def test_blank_name(self, client: AsyncClient, premium_headers):
        response = await client.post(LEAGUES, headers=premium_headers, json={'name': '  '})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_mine(self, client: AsyncClient, premium_headers, league):
        response = await client.get(LEAGUES, headers=premium_headers)

        assert [item['id'] for item in response.json()['leagues']] == [league['id']]

    @pytest.mark.asyncio
    async def test_non_member_cannot_view(self, client: AsyncClient, friend_headers, league):
        response = await client.get(f"{LEAGUES}/{league['id']}", headers=friend_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update_by_creator(self, client: AsyncClient, premium_headers, league):
        response = await client.patch(f"{LEAGUES}/{league['id']}", headers=premium_headers,
                                      json={'name': 'Senior Common Room', 'max_members': 10})

        assert response.status_code == 200
        assert response.json()['name'] == 'Senior Common Room'
        assert response.json()['max_members'] == 10

    @pytest.mark.asyncio
    async def test_delete_by_non_owner(self, client: AsyncClient, friend_headers, league):
        response = await client.delete(f"{LEAGUES}/{league['id']}", headers=friend_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_by_owner(self, client: AsyncClient, premium_headers, league):
        response = await client.delete(f"{LEAGUES}/{league['id']}", headers=premium_headers)
        gone = await client.get(f"{LEAGUES}/{league['id']}", headers=premium_headers)

        assert response.status_code == 200
        assert gone.status_code == 404


class TestMembership:

    @pytest.mark.asyncio
    async def test_join_by_code(self, client: AsyncClient, friend_headers, league):
        response = await client.post(f'{LEAGUES}/join-by-code', headers=friend_headers,
                                     json={'code': league['invite_code'].lower()})

        assert response.status_code == 200
        assert response.json()['member_count'] == 2
        assert response.json()['is_creator'] is False

    @pytest.mark.asyncio
    async def test_join_by_unknown_code(self, client: AsyncClient, friend_headers):
        response = await client.post(f'{LEAGUES}/join-by-code', headers=friend_headers, json={'code': 'ZZZZZZZZ'})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_join_by_empty_code(self, client: AsyncClient, friend_headers):
        response = await client.post(f'{LEAGUES}/join-by-code', headers=friend_headers, json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_join_with_wrong_invite(self, client: AsyncClient, friend_headers, league):
        response = await client.post(f"{LEAGUES}/{league['id']}/join", headers=friend_headers,
                                     json={'invite_code': 'WRONG234'})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_join_twice(self, client: AsyncClient, friend_headers, league):
        url = f"{LEAGUES}/{league['id']}/join"
        await client.post(url, headers=friend_headers, json={'invite_code': league['invite_code']})

        response = await client.post(url, headers=friend_headers, json={'invite_code': league['invite_code']})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_full_league(self, client: AsyncClient, premium_headers, friend_headers, league,
                               user_factory, make_headers):
        await client.post(f"{LEAGUES}/{league['id']}/join", headers=friend_headers)
        await client.patch(f"{LEAGUES}/{league['id']}", headers=premium_headers, json={'max_members': 2})
        third = await user_factory(tier=UserTier.PREMIUM, subscription_status=UserSubscriptionStatus.ACTIVE)

        response = await client.post(f"{LEAGUES}/{league['id']}/join", headers=make_headers(third))

        assert response.status_code == 400
        assert response.json()['error'] == 'League is full'

    @pytest.mark.asyncio
    async def test_max_members_below_count(self, client: AsyncClient, premium_headers, friend_headers,
                                           league, user_factory, make_headers):
        await client.post(f"{LEAGUES}/{league['id']}/join", headers=friend_headers)
        third = await user_factory(tier=UserTier.PREMIUM, subscription_status=UserSubscriptionStatus.ACTIVE)
        await client.post(f"{LEAGUES}/{league['id']}/join", headers=make_headers(third))

        response = await client.patch(f"{LEAGUES}/{league['id']}", headers=premium_headers,
                                      json={'max_members': 2})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_leave_and_rejoin(self, client: AsyncClient, friend_headers, league):
        join_url = f"{LEAGUES}/{league['id']}/join"
        await client.post(join_url, headers=friend_headers)

        left = await client.post(f"{LEAGUES}/{league['id']}/leave", headers=friend_headers)
        again = await client.post(f"{LEAGUES}/{league['id']}/leave", headers=friend_headers)
        rejoined = await client.post(join_url, headers=friend_headers)

        assert left.status_code == 200
        assert again.status_code == 400
        assert rejoined.status_code == 200

    @pytest.mark.asyncio
    async def test_creator_cannot_leave(self, client: AsyncClient, premium_headers, league):
        response = await client.post(f"{LEAGUES}/{league['id']}/leave", headers=premium_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_regenerate_invite(self, client: AsyncClient, premium_headers, friend_headers, league):
        response = await client.post(f"{LEAGUES}/{league['id']}/regenerate-invite", headers=premium_headers)
        new_code = response.json()['invite_code']

        old = await client.post(f'{LEAGUES}/join-by-code', headers=friend_headers,
                                json={'code': league['invite_code']})
        new = await client.post(f'{LEAGUES}/join-by-code', headers=friend_headers, json={'code': new_code})

        assert new_code != league['invite_code']
        assert old.status_code == 404
        assert new.status_code == 200

    @pytest.mark.asyncio
    async def test_regenerate_by_member(self, client: AsyncClient, friend_headers, league):
        await client.post(f"{LEAGUES}/{league['id']}/join", headers=friend_headers)

        response = await client.post(f"{LEAGUES}/{league['id']}/regenerate-invite", headers=friend_headers)

        assert response.status_code == 403


class TestLeagueStats:

    @pytest.mark.asyncio
    async def test_stats_after_completions(self, client: AsyncClient, premium_headers, friend_headers,
                                           league, published_quiz):
        await client.post(f"{LEAGUES}/{league['id']}/join", headers=friend_headers)
        for headers, score in ((premium_headers, 17), (friend_headers, 21)):
            await client.post('/api/v1/quiz/completion', headers=headers, json={
                'quiz_slug': published_quiz.slug, 'score': score, 'total_questions': 25,
            })

        response = await client.get(f"{LEAGUES}/{league['id']}/stats", headers=premium_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['quiz_slugs'] == [published_quiz.slug]
        assert [row['score'] for row in data['stats']] == [21, 17]
        assert [row['total_correct_answers'] for row in data['overall_stats']] == [21, 17]

    @pytest.mark.asyncio
    async def test_stats_hidden_from_outsiders(self, client: AsyncClient, friend_headers, league):
        response = await client.get(f"{LEAGUES}/{league['id']}/stats", headers=friend_headers)

        assert response.status_code == 403
