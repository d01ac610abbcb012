"""
Unit Tests for Billing API Endpoints
Tests for: plans, offer code validation, checkout, subscriptions
"""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

from app.models.billing import OfferCode, DiscountType


@pytest.fixture
def offer_factory(db_session):
    async def create(code='SPRING', discount_type=DiscountType.PERCENTAGE, discount_value=20, **extra):
        values = dict(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            current_uses=0,
            valid_from=datetime.utcnow() - timedelta(days=1),
            applicable_plans=[],
            is_active=True,
        )
        values.update(extra)
        offer = OfferCode(**values)
        db_session.add(offer)
        await db_session.commit()
        return offer
    return create


class TestPlans:

    @pytest.mark.asyncio
    async def test_list_plans(self, client: AsyncClient):
        response = await client.get('/api/v1/billing/plans')

        assert response.status_code == 200
        plans = {p['code']: p for p in response.json()}
        assert plans['INDIVIDUAL']['price_cents'] == 499
        assert plans['ORG_MONTHLY']['price_cents'] == 4900
        assert plans['ORG_ANNUAL']['period_days'] == 365


class TestValidateOfferCode:

    @pytest.mark.asyncio
    async def test_valid_code(self, client: AsyncClient, auth_headers, offer_factory):
        await offer_factory()

        response = await client.post('/api/v1/billing/offer-codes/validate', headers=auth_headers,
                                     json={'code': 'spring', 'plan': 'INDIVIDUAL'})

        assert response.status_code == 200
        data = response.json()
        assert data['valid'] is True
        assert data['discount_cents'] == 99
        assert data['final_amount_cents'] == 400

    @pytest.mark.asyncio
    async def test_unknown_code_is_not_an_error(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/v1/billing/offer-codes/validate', headers=auth_headers,
                                     json={'code': 'NOPE', 'plan': 'INDIVIDUAL'})

        assert response.status_code == 200
        assert response.json()['valid'] is False
        assert response.json()['message'] == 'Invalid offer code'
        assert response.json()['final_amount_cents'] == 499

    @pytest.mark.asyncio
    async def test_wrong_plan(self, client: AsyncClient, auth_headers, offer_factory):
        await offer_factory(applicable_plans=['ORG_ANNUAL'])

        response = await client.post('/api/v1/billing/offer-codes/validate', headers=auth_headers,
                                     json={'code': 'SPRING', 'plan': 'INDIVIDUAL'})

        assert response.json()['valid'] is False
        assert 'does not apply' in response.json()['message']


class TestCheckout:

    @pytest.mark.asyncio
    async def test_individual_checkout(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/v1/billing/checkout', headers=auth_headers,
                                     json={'plan': 'INDIVIDUAL'})

        assert response.status_code == 201
        data = response.json()
        assert data['is_premium'] is True
        assert data['subscription']['status'] == 'ACTIVE'
        assert data['invoice']['amount_cents'] == 499
        assert data['invoice']['status'] == 'PAID'

        me = await client.get('/api/v1/users/me', headers=auth_headers)
        assert me.json()['tier'] == 'premium'

    @pytest.mark.asyncio
    async def test_checkout_with_fixed_discount(self, client: AsyncClient, auth_headers, offer_factory):
        await offer_factory(code='TENOFF', discount_type=DiscountType.FIXED_AMOUNT, discount_value=100)

        response = await client.post('/api/v1/billing/checkout', headers=auth_headers,
                                     json={'plan': 'INDIVIDUAL', 'offer_code': 'tenoff'})

        invoice = response.json()['invoice']
        assert invoice['subtotal_cents'] == 499
        assert invoice['discount_cents'] == 100
        assert invoice['amount_cents'] == 399

    @pytest.mark.asyncio
    async def test_code_usable_once_per_user(self, client: AsyncClient, auth_headers, offer_factory):
        await offer_factory()

        first = await client.post('/api/v1/billing/checkout', headers=auth_headers,
                                  json={'plan': 'INDIVIDUAL', 'offer_code': 'SPRING'})
        second = await client.post('/api/v1/billing/checkout', headers=auth_headers,
                                   json={'plan': 'INDIVIDUAL', 'offer_code': 'SPRING'})

        assert first.status_code == 201
        assert second.status_code == 400

    @pytest.mark.asyncio
    async def test_exhausted_code(self, client: AsyncClient, auth_headers, offer_factory):
        await offer_factory(max_uses=1, current_uses=1)

        response = await client.post('/api/v1/billing/checkout', headers=auth_headers,
                                     json={'plan': 'INDIVIDUAL', 'offer_code': 'SPRING'})

        assert response.status_code == 400
        assert 'usage limit' in response.json()['error']

    @pytest.mark.asyncio
    async def test_trial_extension(self, client: AsyncClient, auth_headers, offer_factory):
        await offer_factory(code='TWOWEEKS', discount_type=DiscountType.FREE_TRIAL_EXTENSION, discount_value=14)

        response = await client.post('/api/v1/billing/checkout', headers=auth_headers,
                                     json={'plan': 'INDIVIDUAL', 'offer_code': 'TWOWEEKS'})

        assert response.status_code == 201
        data = response.json()
        assert data['subscription'] is None
        assert data['invoice']['amount_cents'] == 0
        assert data['free_trial_until'] is not None
        assert data['is_premium'] is True

    @pytest.mark.asyncio
    async def test_renewal_extends_period(self, client: AsyncClient, auth_headers):
        first = await client.post('/api/v1/billing/checkout', headers=auth_headers, json={'plan': 'INDIVIDUAL'})
        second = await client.post('/api/v1/billing/checkout', headers=auth_headers, json={'plan': 'INDIVIDUAL'})

        first_end = datetime.fromisoformat(first.json()['subscription']['current_period_end'])
        second_end = datetime.fromisoformat(second.json()['subscription']['current_period_end'])
        assert second.json()['subscription']['id'] == first.json()['subscription']['id']
        assert (second_end - first_end).days == 30

    @pytest.mark.asyncio
    async def test_organisation_checkout(self, client: AsyncClient, auth_headers, organisation):
        response = await client.post('/api/v1/billing/checkout', headers=auth_headers, json={
            'plan': 'ORG_ANNUAL', 'organisation_id': str(organisation.id),
        })

        assert response.status_code == 201
        assert response.json()['invoice']['amount_cents'] == 49000

        org = await client.get(f'/api/v1/organisations/{organisation.id}', headers=auth_headers)
        assert org.json()['status'] == 'ACTIVE'
        assert org.json()['plan'] == 'ORG_ANNUAL'

    @pytest.mark.asyncio
    async def test_organisation_checkout_needs_billing_permission(self, client: AsyncClient,
                                                                  premium_headers, organisation):
        response = await client.post('/api/v1/billing/checkout', headers=premium_headers, json={
            'plan': 'ORG_MONTHLY', 'organisation_id': str(organisation.id),
        })

        assert response.status_code == 403


class TestSubscription:

    @pytest.mark.asyncio
    async def test_no_subscription(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/v1/billing/subscription', headers=auth_headers)

        assert response.json() == {'subscription': None}

    @pytest.mark.asyncio
    async def test_cancel_without_subscription(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/v1/billing/subscription/cancel', headers=auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_at_period_end(self, client: AsyncClient, auth_headers):
        await client.post('/api/v1/billing/checkout', headers=auth_headers, json={'plan': 'INDIVIDUAL'})

        response = await client.post('/api/v1/billing/subscription/cancel', headers=auth_headers)

        assert response.status_code == 200
        assert response.json()['cancel_at_period_end'] is True
        assert response.json()['status'] == 'ACTIVE'

    @pytest.mark.asyncio
    async def test_invoice_history(self, client: AsyncClient, auth_headers):
        await client.post('/api/v1/billing/checkout', headers=auth_headers, json={'plan': 'INDIVIDUAL'})
        await client.post('/api/v1/billing/checkout', headers=auth_headers, json={'plan': 'INDIVIDUAL'})

        response = await client.get('/api/v1/billing/invoices', headers=auth_headers)

        assert response.json()['total'] == 2
