"""
Unit Tests for the player-facing quiz, completion and achievement endpoints
"""
import pytest
from httpx import AsyncClient

from app.models.achievement import Achievement, AchievementRarity, UnlockConditionType
from app.models.quiz import QuizStatus


async def add_achievement(db_session, slug, condition, config=None, premium_only=False):
    achievement = Achievement(
        slug=slug,
        name=slug.replace('-', ' ').title(),
        short_description='Test achievement',
        category='testing',
        rarity=AchievementRarity.RARE,
        is_premium_only=premium_only,
        unlock_condition_type=condition,
        unlock_condition_config=config,
    )
    db_session.add(achievement)
    await db_session.commit()
    return achievement


class TestQuizCatalogue:

    @pytest.mark.asyncio
    async def test_only_published_listed(self, client: AsyncClient, quiz_factory):
        await quiz_factory('1')
        await quiz_factory('2', status=QuizStatus.DRAFT)

        response = await client.get('/api/v1/quizzes')

        assert response.status_code == 200
        quizzes = response.json()['quizzes']
        assert [q['slug'] for q in quizzes] == ['1']
        assert quizzes[0]['question_count'] == 25

    @pytest.mark.asyncio
    async def test_get_published(self, client: AsyncClient, published_quiz):
        response = await client.get(f'/api/v1/quizzes/{published_quiz.slug}')

        assert response.status_code == 200
        rounds = response.json()['rounds']
        assert len(rounds) == 5
        assert rounds[-1]['is_peoples_round'] is True

    @pytest.mark.asyncio
    async def test_draft_is_hidden(self, client: AsyncClient, quiz_factory):
        await quiz_factory('draft-1', status=QuizStatus.DRAFT)

        response = await client.get('/api/v1/quizzes/draft-1')

        assert response.status_code == 404
        assert response.json()['code'] == 'QUIZ_NOT_FOUND'


class TestCompletions:

    @pytest.mark.asyncio
    async def test_submit_and_lookup(self, client: AsyncClient, auth_headers, published_quiz):
        submitted = await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': published_quiz.slug,
            'score': 18,
            'total_questions': 25,
            'time_seconds': 600,
            'round_results': [{'round_number': 1, 'category': 'General', 'correct': 5, 'total': 6}],
        })

        assert submitted.status_code == 200
        assert submitted.json()['completion']['attempts'] == 1

        lookup = await client.get('/api/v1/quiz/completion', headers=auth_headers,
                                  params={'quiz_slug': published_quiz.slug})
        assert lookup.json()['completion']['score'] == 18

    @pytest.mark.asyncio
    async def test_lookup_without_completion(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/v1/quiz/completion', headers=auth_headers, params={'quiz_slug': '99'})

        assert response.status_code == 200
        assert response.json() == {'completion': None}

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': 'nope', 'score': 1, 'total_questions': 25,
        })

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_login(self, client: AsyncClient, published_quiz):
        response = await client.post('/api/v1/quiz/completion', json={
            'quiz_slug': published_quiz.slug, 'score': 1, 'total_questions': 25,
        })

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_perfect_round_unlocks_achievement(self, client: AsyncClient, db_session,
                                                     auth_headers, published_quiz):
        await add_achievement(db_session, 'clean-sweep', UnlockConditionType.SCORE_5_OF_5)

        response = await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': published_quiz.slug,
            'score': 20,
            'total_questions': 25,
            'round_results': [{'round_number': 2, 'category': 'Science', 'correct': 6, 'total': 6}],
        })

        unlocked = response.json()['new_achievements']
        assert [a['slug'] for a in unlocked] == ['clean-sweep']
        assert unlocked[0]['rarity'] == 'rare'

        mine = await client.get('/api/v1/users/me/achievements', headers=auth_headers)
        assert mine.json()[0]['meta'] == {'round_number': 2, 'category': 'Science'}
        assert mine.json()[0]['quiz_slug'] == published_quiz.slug

    @pytest.mark.asyncio
    async def test_free_user_skips_premium_achievement(self, client: AsyncClient, db_session,
                                                       auth_headers, published_quiz):
        await add_achievement(db_session, 'gold-sweep', UnlockConditionType.SCORE_5_OF_5, premium_only=True)

        response = await client.post('/api/v1/quiz/completion', headers=auth_headers, json={
            'quiz_slug': published_quiz.slug, 'score': 25, 'total_questions': 25,
        })

        assert response.json()['new_achievements'] == []


class TestAchievementCatalogue:

    @pytest.mark.asyncio
    async def test_anonymous_cannot_earn(self, client: AsyncClient, db_session):
        await add_achievement(db_session, 'regular', UnlockConditionType.REPEAT_QUIZ, {'minCompletions': 2})

        response = await client.get('/api/v1/achievements')

        assert response.status_code == 200
        assert response.json()[0]['can_earn'] is False
        assert response.json()[0]['unlocked'] is False

    @pytest.mark.asyncio
    async def test_free_user_eligibility(self, client: AsyncClient, db_session, auth_headers):
        await add_achievement(db_session, 'free-one', UnlockConditionType.REPEAT_QUIZ)
        await add_achievement(db_session, 'premium-one', UnlockConditionType.REPEAT_QUIZ, premium_only=True)

        response = await client.get('/api/v1/achievements', headers=auth_headers)

        can_earn = {a['slug']: a['can_earn'] for a in response.json()}
        assert can_earn == {'free-one': True, 'premium-one': False}

    @pytest.mark.asyncio
    async def test_invalid_token_treated_as_anonymous(self, client: AsyncClient, db_session):
        await add_achievement(db_session, 'regular', UnlockConditionType.REPEAT_QUIZ)

        response = await client.get('/api/v1/achievements', headers={'Authorization': 'Bearer junk'})

        assert response.status_code == 200
        assert response.json()[0]['can_earn'] is False
