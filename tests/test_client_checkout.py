import asyncio

import httpx
import pytest

from storefront.client.api_client import CartApiClient
from storefront.client.cart_store import CartLine
from storefront.client.checkout import CheckoutFlow, CheckoutStep
from storefront.client.notifier import RecordingNotifier
from storefront.client.session import StaticSession
from storefront.client.sync import CartSyncCoordinator
from storefront.errors import CheckoutFailed, EmptyCart, InvalidCheckoutStep, InvalidPaymentDetails

CARD = {"card_number": "4111111111111111", "expiry_date": "01/30", "cvv": "999"}


def run_flow(api_app, steps):
    """Run ``steps(coord, flow)`` against the app with user u1 signed in."""

    async def scenario():
        session = StaticSession("u1")
        api = CartApiClient(session, base_url="http://test", transport=httpx.ASGITransport(app=api_app))
        coord = CartSyncCoordinator(api, session, notifier=RecordingNotifier())
        flow = CheckoutFlow(api, coord.context, notifier=RecordingNotifier())
        try:
            return await steps(coord, flow)
        finally:
            await api.aclose()

    return asyncio.run(scenario())


def test_full_checkout_moves_forward_only(api_app, catalog, address_id):
    async def steps(coord, flow):
        await coord.add_item(CartLine(product_id=catalog["TEA-100"], quantity=1))
        summary = await flow.start()
        assert summary["total_cents"] == 40400

        flow.select_address(address_id)
        flow.back()
        assert flow.step == CheckoutStep.ADDRESS
        flow.select_address(address_id)

        order = await flow.pay("card", CARD)
        assert order["status"] == "PAID"
        assert flow.step == CheckoutStep.CONFIRMATION
        assert coord.store.items == []

        with pytest.raises(InvalidCheckoutStep):
            flow.back()
        with pytest.raises(InvalidCheckoutStep):
            await flow.pay("card", CARD)

        await coord.sync_with_server()
        assert coord.store.items == []

    run_flow(api_app, steps)


def test_declined_payment_stays_on_payment_step(api_app, catalog, address_id):
    async def steps(coord, flow):
        await coord.add_item(CartLine(product_id=catalog["TEA-100"], quantity=1))
        await flow.start()
        flow.select_address(address_id)
        with pytest.raises(CheckoutFailed):
            await flow.pay("card", {**CARD, "force_decline": True})
        assert flow.step == CheckoutStep.PAYMENT
        assert len(coord.store.items) == 1
        assert "error" in flow.notifier.kinds()

        with pytest.raises(InvalidPaymentDetails):
            await flow.pay("upi", {"upi_id": "nobody"})

        order = await flow.pay("cod")
        assert order["status"] == "PAID"

    run_flow(api_app, steps)


def test_cannot_start_with_an_empty_cart(api_app, catalog):
    async def steps(coord, flow):
        with pytest.raises(EmptyCart):
            await flow.start()
        with pytest.raises(InvalidCheckoutStep):
            await flow.pay("cod")

    run_flow(api_app, steps)
