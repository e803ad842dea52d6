from functools import wraps
from typing import Optional
import uuid

from flask import Flask, request, jsonify, session
import structlog

from config import Settings, load_settings, configure_logging
from core.storefront import Storefront
from services.cart_service import parse_delivery_method
from services.errors import (
    errmsg, StorefrontError, AuthenticationError, AuthorizationError, ValidationError
)

logger = structlog.get_logger()

ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")


def current_user_id() -> str:
    # 외부 인증 계층이 세션에 저장한 사용자 ID
    user_id = session.get('user_id')
    if not user_id:
        raise AuthenticationError(errmsg.UNAUTHENTICATED)
    return user_id


def cart_session_id() -> str:
    # Get or create session ID
    if 'session_id' not in session:
        session['session_id'] = str(uuid.uuid4())
    return session['session_id']


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        current_user_id()
        if session.get('role') not in ADMIN_ROLES:
            raise AuthorizationError("Administrator access required")
        return view(*args, **kwargs)
    return wrapper


def request_data() -> dict:
    return request.get_json(silent=True) or {}


def create_app(settings: Optional[Settings] = None, storefront: Optional[Storefront] = None) -> Flask:
    """Build the JSON API around one Storefront instance"""
    settings = settings or load_settings()
    store = storefront or Storefront(settings)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config['STOREFRONT'] = store

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(error: StorefrontError):
        logger.info("request_rejected", path=request.path, status=error.status_code,
                    error=error.message, code=error.code)
        return jsonify(error.to_dict()), error.status_code

    # === 카탈로그 ===
    @app.route('/api/categories')
    def categories():
        return jsonify(store.product_service.get_categories())

    @app.route('/api/products')
    def products():
        return jsonify(store.product_service.list_products(request.args.get('categoryId')))

    @app.route('/api/products/<product_id>')
    def product_details(product_id):
        return jsonify(store.product_service.get_product_details(product_id))

    @app.route('/api/products/<product_id>', methods=['PATCH'])
    @admin_required
    def update_product(product_id):
        return jsonify(store.product_service.update_product(product_id, request_data()))

    # === 매장 설정 ===
    @app.route('/api/settings')
    def get_settings():
        return jsonify(store.settings_service.get_settings_details())

    @app.route('/api/settings', methods=['PUT'])
    @admin_required
    def update_settings():
        return jsonify(store.settings_service.update_settings(request_data()))

    @app.route('/api/exchange-rates')
    def exchange_rates():
        return jsonify(store.settings_service.get_exchange_rates())

    # === 장바구니 ===
    @app.route('/api/cart')
    def get_cart():
        method = parse_delivery_method(request.args.get('deliveryMethod', 'PICKUP'))
        return jsonify(store.cart_service.get_cart_details(
            cart_session_id(), session.get('user_id'), method
        ))

    @app.route('/api/cart/items', methods=['POST'])
    def add_cart_item():
        data = request_data()
        result = store.cart_service.add_item(
            cart_session_id(), data.get('productId'), data.get('quantity', 1),
            data.get('denomination')
        )
        return jsonify(result), 201

    @app.route('/api/cart/items/<line_id>', methods=['PATCH'])
    def update_cart_item(line_id):
        return jsonify(store.cart_service.update_quantity(
            cart_session_id(), line_id, request_data().get('quantity')
        ))

    @app.route('/api/cart/items/<line_id>', methods=['DELETE'])
    def remove_cart_item(line_id):
        return jsonify(store.cart_service.remove_item(cart_session_id(), line_id))

    @app.route('/api/cart/totals', methods=['POST'])
    def cart_totals():
        data = request_data()
        return jsonify(store.cart_service.quote(
            cart_session_id(), session.get('user_id'), data.get('deliveryMethod'), data.get('items')
        ))

    # === 주문 ===
    @app.route('/api/orders', methods=['POST'])
    def create_order():
        data = request_data()
        result = store.order_service.create_order(
            current_user_id(), cart_session_id(), data.get('deliveryMethod'), data.get('paymentMethod')
        )
        return jsonify(result), 201

    @app.route('/api/orders/<order_number>')
    def order_details(order_number):
        user_id = current_user_id()
        owner = None if session.get('role') in ADMIN_ROLES else user_id
        return jsonify(store.order_service.get_order_details(order_number, owner))

    # === 지갑 ===
    @app.route('/api/customer/balance')
    def balance():
        return jsonify(store.balance_service.get_balance_details(current_user_id()))

    @app.route('/api/customer/balance/deduct', methods=['POST'])
    def deduct_balance():
        data = request_data()
        return jsonify(store.balance_service.deduct(
            current_user_id(), data.get('amount'), data.get('description', ''), data.get('orderId')
        ))

    @app.route('/api/customer/balance/recharge', methods=['POST'])
    def create_recharge():
        data = request_data()
        result = store.recharge_service.create_recharge(
            current_user_id(), data.get('amount'), data.get('paymentMethod'),
            data.get('reference'), data.get('description')
        )
        return jsonify(result), 201

    @app.route('/api/customer/balance/recharges/pending')
    def pending_recharges():
        return jsonify(store.recharge_service.get_pending_recharges(current_user_id()))

    @app.route('/api/customer/balance/recharge/<transaction_id>/cancel', methods=['POST'])
    def cancel_recharge(transaction_id):
        return jsonify(store.recharge_service.cancel_recharge(current_user_id(), transaction_id))

    @app.route('/api/customer/balance/terms')
    def terms_status():
        return jsonify(store.balance_service.get_terms_status(current_user_id()))

    @app.route('/api/customer/balance/terms', methods=['POST'])
    def accept_terms():
        data = request_data()
        return jsonify(store.balance_service.accept_terms(
            current_user_id(), data.get('idNumber'), data.get('signatureData'),
            data.get('termsVersion'), data.get('phone'), data.get('address')
        ))

    @app.route('/api/customer/company-payment-methods')
    def company_payment_methods():
        current_user_id()
        return jsonify(store.recharge_service.get_payment_methods())

    @app.route('/api/pago-movil/verificar', methods=['POST'])
    async def verify_mobile_payment():
        data = request_data()
        result = await store.recharge_service.verify_mobile_payment(
            current_user_id(), data, data.get('context', 'GENERAL'), data.get('transactionId')
        )
        return jsonify(result)

    @app.route('/api/pago-movil/verificaciones')
    def verification_history():
        return jsonify(store.recharge_service.get_verification_history(current_user_id()))

    @app.route('/api/admin/recharges/<transaction_id>/review', methods=['POST'])
    @admin_required
    def review_recharge(transaction_id):
        data = request_data()
        action = data.get('action')
        if action not in ('approve', 'reject'):
            raise ValidationError("action must be 'approve' or 'reject'")
        return jsonify(store.recharge_service.review_recharge(
            transaction_id, action == 'approve', session.get('user_id'), data.get('note')
        ))

    # === 기프트카드 ===
    @app.route('/api/gift-cards/options')
    def gift_card_options():
        return jsonify(store.gift_card_service.get_amount_options(request.args.get('amount')))

    @app.route('/api/gift-cards')
    def purchased_gift_cards():
        return jsonify(store.gift_card_service.get_purchased(current_user_id()))

    @app.route('/api/gift-cards', methods=['POST'])
    def purchase_gift_card():
        data = request_data()
        result = store.gift_card_service.purchase(
            current_user_id(), data.get('amountUSD'), data.get('recipientEmail'), data.get('message', '')
        )
        return jsonify(result), 201

    @app.route('/api/users/check')
    def check_user():
        current_user_id()
        return jsonify(store.gift_card_service.check_recipient(request.args.get('email')))

    @app.route('/api/users/invite', methods=['POST'])
    def invite_user():
        return jsonify(store.gift_card_service.invite_recipient(
            current_user_id(), request_data().get('email')
        ))

    @app.route('/health')
    def health():
        """Health check endpoint"""
        return jsonify({'status': 'ok', 'message': 'Storefront API is running!'})

    return app


if __name__ == '__main__':
    settings = load_settings()
    configure_logging(settings)
    app = create_app(settings)

    logger.info("server_starting", port=settings.port, debug=settings.debug)

    app.run(
        host='0.0.0.0',
        port=settings.port,
        debug=settings.debug
    )
