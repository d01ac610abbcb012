"""
Unit Tests for Admin Dashboard API Endpoints
Tests for: access control, quizzes, question bank, achievements,
offer codes, organisations, users, stats and audit logs
"""
import pytest
from httpx import AsyncClient

ADMIN = '/api/v1/admin'

ACHIEVEMENT = {
    'slug': 'time-traveller',
    'name': 'Time Traveller',
    'short_description': 'Play a quiz from a fortnight ago',
    'category': 'timing',
    'rarity': 'rare',
    'unlock_condition_type': 'time_window',
    'unlock_condition_config': {'weeksAgo': 2},
}


class TestAdminAccess:

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client: AsyncClient, auth_headers):
        response = await client.get(f'{ADMIN}/quizzes', headers=auth_headers)

        assert response.status_code == 403
        assert response.json()['detail'] == 'Admin access required'

    @pytest.mark.asyncio
    async def test_anonymous(self, client: AsyncClient):
        response = await client.get(f'{ADMIN}/stats')

        assert response.status_code == 401


class TestAdminQuizzes:

    @pytest.mark.asyncio
    async def test_create_numbers_slugs(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        first = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload())
        second = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload())

        assert first.status_code == 201
        assert first.json()['slug'] == '1'
        assert first.json()['status'] == 'draft'
        assert len(first.json()['rounds']) == 5
        assert second.json()['slug'] == '2'

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload(slug='halloween'))

        response = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers,
                                     json=quiz_payload(slug='Halloween'))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_publish_incomplete_quiz(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        created = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers,
                                    json=quiz_payload(standard_rounds=3))

        response = await client.post(f"{ADMIN}/quizzes/{created.json()['id']}/publish",
                                     headers=admin_auth_headers)

        assert response.status_code == 400
        assert 'Quiz must have 4 standard rounds (has 3)' in response.json()['error']

    @pytest.mark.asyncio
    async def test_publish(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        created = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload())

        response = await client.post(f"{ADMIN}/quizzes/{created.json()['id']}/publish",
                                     headers=admin_auth_headers)
        public = await client.get(f"/api/v1/quizzes/{created.json()['slug']}")

        assert response.status_code == 200
        assert response.json()['status'] == 'published'
        assert response.json()['published_at'] is not None
        assert public.status_code == 200

    @pytest.mark.asyncio
    async def test_status_cannot_be_patched_to_published(self, client: AsyncClient, admin_auth_headers,
                                                         quiz_payload):
        created = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload())

        response = await client.patch(f"{ADMIN}/quizzes/{created.json()['id']}", headers=admin_auth_headers,
                                      json={'status': 'published'})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_replaces_rounds(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        created = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers,
                                    json=quiz_payload(standard_rounds=3))
        rounds = quiz_payload()['rounds']

        response = await client.patch(f"{ADMIN}/quizzes/{created.json()['id']}", headers=admin_auth_headers,
                                      json={'title': 'Fixed Quiz', 'rounds': rounds})

        assert response.status_code == 200
        assert response.json()['title'] == 'Fixed Quiz'
        assert len(response.json()['rounds']) == 5

    @pytest.mark.asyncio
    async def test_slug_locked_after_play(self, client: AsyncClient, admin_auth_headers, auth_headers,
                                          published_quiz):
        await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': published_quiz.slug, 'score': 10, 'total_questions': 25,
        })

        response = await client.patch(f'{ADMIN}/quizzes/{published_quiz.id}', headers=admin_auth_headers,
                                      json={'slug': 'renamed'})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate(self, client: AsyncClient, admin_auth_headers, published_quiz):
        first = await client.post(f'{ADMIN}/quizzes/{published_quiz.id}/duplicate', headers=admin_auth_headers)
        second = await client.post(f'{ADMIN}/quizzes/{published_quiz.id}/duplicate', headers=admin_auth_headers)

        assert first.status_code == 201
        assert first.json()['slug'] == f'{published_quiz.slug}-copy'
        assert first.json()['status'] == 'draft'
        assert second.json()['slug'] == f'{published_quiz.slug}-copy-2'

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        created = await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload())
        quiz_url = f"{ADMIN}/quizzes/{created.json()['id']}"

        deleted = await client.delete(quiz_url, headers=admin_auth_headers)
        gone = await client.get(quiz_url, headers=admin_auth_headers)

        assert deleted.json()['success'] is True
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, client: AsyncClient, admin_auth_headers, quiz_payload,
                                          published_quiz):
        await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload(slug='draft-one'))

        response = await client.get(f'{ADMIN}/quizzes', headers=admin_auth_headers, params={'status': 'draft'})

        assert [q['slug'] for q in response.json()['quizzes']] == ['draft-one']
        assert response.json()['pagination']['total'] == 1

    @pytest.mark.asyncio
    async def test_question_bank(self, client: AsyncClient, admin_auth_headers, quiz_payload):
        await client.post(f'{ADMIN}/quizzes', headers=admin_auth_headers, json=quiz_payload())

        everything = await client.get(f'{ADMIN}/questions', headers=admin_auth_headers)
        searched = await client.get(f'{ADMIN}/questions', headers=admin_auth_headers,
                                    params={'search': 'mona'})

        assert everything.json()['total'] == 25
        assert searched.json()['total'] == 1
        assert searched.json()['questions'][0]['category'] == 'People'


class TestAdminAchievements:

    @pytest.mark.asyncio
    async def test_crud(self, client: AsyncClient, admin_auth_headers):
        created = await client.post(f'{ADMIN}/achievements', headers=admin_auth_headers, json=ACHIEVEMENT)
        url = f"{ADMIN}/achievements/{created.json()['id']}"

        updated = await client.patch(url, headers=admin_auth_headers, json={'rarity': 'epic'})
        deleted = await client.delete(url, headers=admin_auth_headers)
        gone = await client.get(url, headers=admin_auth_headers)

        assert created.status_code == 201
        assert created.json()['unlock_condition_type'] == 'time_window'
        assert updated.json()['rarity'] == 'epic'
        assert deleted.status_code == 200
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, client: AsyncClient, admin_auth_headers):
        await client.post(f'{ADMIN}/achievements', headers=admin_auth_headers, json=ACHIEVEMENT)

        response = await client.post(f'{ADMIN}/achievements', headers=admin_auth_headers, json=ACHIEVEMENT)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, admin_auth_headers):
        await client.post(f'{ADMIN}/achievements', headers=admin_auth_headers, json=ACHIEVEMENT)

        response = await client.get(f'{ADMIN}/achievements/stats', headers=admin_auth_headers)

        assert response.status_code == 200
        stat = response.json()['achievements'][0]
        assert stat['slug'] == 'time-traveller'
        assert stat['total_unlocks'] == 0


class TestAdminOfferCodes:

    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient, admin_auth_headers):
        created = await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json={
            'code': 'summer', 'discount_type': 'PERCENTAGE', 'discount_value': 25, 'max_uses': 10,
        })
        listed = await client.get(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers)

        assert created.status_code == 201
        assert created.json()['code'] == 'SUMMER'
        assert listed.json()['total'] == 1

    @pytest.mark.asyncio
    async def test_generated_code(self, client: AsyncClient, admin_auth_headers):
        response = await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json={
            'discount_type': 'FIXED_AMOUNT', 'discount_value': 200,
        })

        assert response.status_code == 201
        assert response.json()['code']

    @pytest.mark.asyncio
    async def test_duplicate_code(self, client: AsyncClient, admin_auth_headers):
        body = {'code': 'SUMMER', 'discount_type': 'PERCENTAGE', 'discount_value': 25}
        await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json=body)

        response = await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json=body)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_percentage_over_100(self, client: AsyncClient, admin_auth_headers):
        response = await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json={
            'code': 'TOOMUCH', 'discount_type': 'PERCENTAGE', 'discount_value': 150,
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_redemption_counted(self, client: AsyncClient, admin_auth_headers, auth_headers):
        await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json={
            'code': 'SUMMER', 'discount_type': 'PERCENTAGE', 'discount_value': 25,
        })
        await client.post('/api/v1/billing/checkout', headers=auth_headers,
                          json={'plan': 'INDIVIDUAL', 'offer_code': 'SUMMER'})

        listed = await client.get(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers)
        invoices = await client.get(f'{ADMIN}/billing/invoices', headers=admin_auth_headers)

        assert listed.json()['offer_codes'][0]['current_uses'] == 1
        assert invoices.json()['invoices'][0]['discount_cents'] == 124

    @pytest.mark.asyncio
    async def test_deactivate_and_delete(self, client: AsyncClient, admin_auth_headers, auth_headers):
        created = await client.post(f'{ADMIN}/billing/offer-codes', headers=admin_auth_headers, json={
            'code': 'SUMMER', 'discount_type': 'PERCENTAGE', 'discount_value': 25,
        })
        url = f"{ADMIN}/billing/offer-codes/{created.json()['id']}"

        patched = await client.patch(url, headers=admin_auth_headers, json={'is_active': False})
        validated = await client.post('/api/v1/billing/offer-codes/validate', headers=auth_headers,
                                      json={'code': 'SUMMER', 'plan': 'INDIVIDUAL'})
        deleted = await client.delete(url, headers=admin_auth_headers)

        assert patched.json()['is_active'] is False
        assert validated.json()['valid'] is False
        assert deleted.json()['success'] is True


class TestAdminOrganisations:

    @pytest.mark.asyncio
    async def test_list_and_get(self, client: AsyncClient, admin_auth_headers, organisation, test_user):
        listed = await client.get(f'{ADMIN}/organisations', headers=admin_auth_headers)
        detail = await client.get(f'{ADMIN}/organisations/{organisation.id}', headers=admin_auth_headers)

        assert listed.json()['pagination']['total'] == 1
        assert detail.json()['owner_email'] == test_user.email
        assert detail.json()['member_count'] == 1

    @pytest.mark.asyncio
    async def test_suspend(self, client: AsyncClient, admin_auth_headers, organisation):
        response = await client.post(f'{ADMIN}/organisations/{organisation.id}/actions',
                                     headers=admin_auth_headers, json={'action': 'suspend'})

        assert response.status_code == 200
        assert response.json()['organisation']['status'] == 'CANCELLED'

    @pytest.mark.asyncio
    async def test_change_max_seats(self, client: AsyncClient, admin_auth_headers, organisation):
        response = await client.post(f'{ADMIN}/organisations/{organisation.id}/actions',
                                     headers=admin_auth_headers,
                                     json={'action': 'changeMaxSeats', 'max_seats': 40})

        assert response.json()['organisation']['max_seats'] == 40

    @pytest.mark.asyncio
    async def test_change_max_seats_needs_value(self, client: AsyncClient, admin_auth_headers, organisation):
        response = await client.post(f'{ADMIN}/organisations/{organisation.id}/actions',
                                     headers=admin_auth_headers, json={'action': 'changeMaxSeats'})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_action(self, client: AsyncClient, admin_auth_headers, organisation):
        response = await client.post(f'{ADMIN}/organisations/{organisation.id}/actions',
                                     headers=admin_auth_headers, json={'action': 'explode'})

        assert response.status_code == 400
        assert 'Invalid action' in response.json()['error']

    @pytest.mark.asyncio
    async def test_transfer_ownership(self, client: AsyncClient, admin_auth_headers, organisation, admin_user):
        response = await client.post(f'{ADMIN}/organisations/{organisation.id}/actions',
                                     headers=admin_auth_headers,
                                     json={'action': 'transferOwnership', 'new_owner_id': str(admin_user.id)})

        assert response.json()['organisation']['owner_user_id'] == str(admin_user.id)

    @pytest.mark.asyncio
    async def test_actions_are_audited(self, client: AsyncClient, admin_auth_headers, organisation):
        await client.post(f'{ADMIN}/organisations/{organisation.id}/actions',
                          headers=admin_auth_headers, json={'action': 'suspend'})

        response = await client.get(f'{ADMIN}/audit-logs', headers=admin_auth_headers,
                                    params={'target_type': 'organisation'})

        logs = response.json()['logs']
        assert [log['action'] for log in logs] == ['organisation_suspend']
        assert logs[0]['target_id'] == str(organisation.id)


class TestAdminUsersAndStats:

    @pytest.mark.asyncio
    async def test_list_users_by_tier(self, client: AsyncClient, admin_auth_headers, premium_user):
        response = await client.get(f'{ADMIN}/users', headers=admin_auth_headers, params={'tier': 'premium'})

        assert [u['id'] for u in response.json()['users']] == [str(premium_user.id)]

    @pytest.mark.asyncio
    async def test_invalid_tier(self, client: AsyncClient, admin_auth_headers):
        response = await client.get(f'{ADMIN}/users', headers=admin_auth_headers, params={'tier': 'gold'})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_user_completion_count(self, client: AsyncClient, admin_auth_headers, auth_headers,
                                         test_user, published_quiz):
        await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': published_quiz.slug, 'score': 12, 'total_questions': 25,
        })

        response = await client.get(f'{ADMIN}/users/{test_user.id}', headers=admin_auth_headers)

        assert response.json()['completions'] == 1

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, client: AsyncClient, admin_auth_headers, premium_user, organisation):
        response = await client.get(f'{ADMIN}/stats', headers=admin_auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['users']['total'] == 3
        assert data['users']['premium'] == 1
        assert data['organisations'] == {'total': 1, 'active': 1}

    @pytest.mark.asyncio
    async def test_engagement(self, client: AsyncClient, admin_auth_headers, auth_headers, published_quiz):
        await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': published_quiz.slug, 'score': 12, 'total_questions': 25,
        })

        response = await client.get(f'{ADMIN}/analytics/engagement', headers=admin_auth_headers)

        data = response.json()
        assert data['dau']['today'] == 1
        assert data['dau']['trend'] == 'up'
        assert len(data['attempts_per_day']) == 30
        assert data['attempts_per_day'][-1]['attempts'] == 1

    @pytest.mark.asyncio
    async def test_funnel(self, client: AsyncClient, admin_auth_headers, premium_user):
        response = await client.get(f'{ADMIN}/analytics/funnel', headers=admin_auth_headers)

        steps = {s['step']: s['count'] for s in response.json()['steps']}
        assert steps == {'registered': 2, 'played_quiz': 0, 'premium': 1}
        assert response.json()['overall_conversion_percent'] == 50.0


class TestAdminUserActions:

    async def act(self, client, headers, user_id, **body):
        return await client.post(f'{ADMIN}/users/{user_id}/actions', headers=headers, json=body)

    @pytest.mark.asyncio
    async def test_suspend_blocks_access(self, client: AsyncClient, admin_auth_headers, auth_headers, test_user):
        response = await self.act(client, admin_auth_headers, test_user.id, action='suspend')

        assert response.status_code == 200
        assert response.json()['message'] == 'User suspended'
        assert response.json()['user']['is_active'] is False

        me = await client.get('/api/v1/users/me', headers=auth_headers)
        assert me.status_code == 403
        assert me.json()['detail'] == 'User account is inactive'

        await self.act(client, admin_auth_headers, test_user.id, action='activate')
        assert (await client.get('/api/v1/users/me', headers=auth_headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_change_tier(self, client: AsyncClient, admin_auth_headers, test_user):
        response = await self.act(client, admin_auth_headers, test_user.id, action='changeTier', tier='premium')

        assert response.json()['user']['tier'] == 'premium'
        assert response.json()['user']['is_premium'] is True

    @pytest.mark.asyncio
    async def test_change_role(self, client: AsyncClient, admin_auth_headers, test_user):
        response = await self.act(client, admin_auth_headers, test_user.id, action='changeRole', role='teacher')

        assert response.json()['user']['role'] == 'teacher'

    @pytest.mark.asyncio
    async def test_generate_referral_code(self, client: AsyncClient, admin_auth_headers, test_user):
        response = await self.act(client, admin_auth_headers, test_user.id, action='generateReferralCode')

        code = response.json()['user']['referral_code']
        assert len(code) == 8
        assert code == code.upper()

    @pytest.mark.asyncio
    async def test_missing_argument(self, client: AsyncClient, admin_auth_headers, test_user):
        response = await self.act(client, admin_auth_headers, test_user.id, action='changeTier')

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_action(self, client: AsyncClient, admin_auth_headers, test_user):
        response = await self.act(client, admin_auth_headers, test_user.id, action='resetEverything')

        assert response.status_code == 400
        assert 'Invalid action' in response.json()['error']

    @pytest.mark.asyncio
    async def test_admin_cannot_suspend_self(self, client: AsyncClient, admin_auth_headers, admin_user):
        response = await self.act(client, admin_auth_headers, admin_user.id, action='suspend')

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient, admin_auth_headers):
        response = await self.act(client, admin_auth_headers, 'missing-user', action='activate')

        assert response.status_code == 404
        assert response.json()['code'] == 'USER_NOT_FOUND'

    @pytest.mark.asyncio
    async def test_action_is_audited(self, client: AsyncClient, admin_auth_headers, test_user):
        await self.act(client, admin_auth_headers, test_user.id, action='changeTier', tier='premium')

        response = await client.get(f'{ADMIN}/audit-logs', headers=admin_auth_headers,
                                    params={'action': 'user_changeTier'})

        logs = response.json()['logs']
        assert len(logs) == 1
        assert logs[0]['target_id'] == str(test_user.id)
        assert logs[0]['details'] == {'action': 'changeTier', 'tier': 'premium'}
