"""
Simple text-based UI for the storefront
"""
import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

from core.storefront import Storefront
from models.order import DeliveryMethod
from services.errors import StorefrontError
from services.payment_verification import BANK_CODES
from services.recharge_workflow import RechargeWorkflow, WorkflowState
from services.settings_service import format_price


class ConsoleStoreUI:
    """Text-based storefront: catalog, cart summary and wallet recharge"""

    def __init__(self, storefront: Storefront, user_id: str = "console_user"):
        self.store = storefront
        self.user_id = user_id
        self.session_id = "console_session"
        self.delivery_method = DeliveryMethod.PICKUP

    def run(self):
        """Run the console storefront"""
        print("Storefront console")
        print("Commands: products, add <id> [qty], cart, delivery <method>, order <payment>,")
        print("          clear, balance, terms, recharge, quit")

        while True:
            user_input = input("\n> ").strip()
            if not user_input:
                continue

            command, _, argument = user_input.partition(" ")
            command = command.lower()

            if command in ["quit", "exit"]:
                print("Bye!")
                break

            try:
                self._dispatch(command, argument.strip())
            except StorefrontError as e:
                print(f"Error: {e.message}")

    def _dispatch(self, command: str, argument: str):
        if command == "products":
            self._show_products()
        elif command == "add":
            self._add_to_cart(argument)
        elif command == "cart":
            self._show_cart()
        elif command == "delivery":
            try:
                self.delivery_method = DeliveryMethod(argument.upper())
            except ValueError:
                print(f"Delivery methods: {', '.join(m.value for m in DeliveryMethod)}")
                return
            self._show_cart()
        elif command == "order":
            self._process_order(argument.upper() or "WALLET")
        elif command == "clear":
            self.store.cart_service.clear_cart(self.session_id)
            print("Cart cleared")
        elif command == "balance":
            self._show_balance()
        elif command == "terms":
            self._accept_terms()
        elif command == "recharge":
            asyncio.run(self._recharge_flow())
        else:
            print("Unknown command")

    def _show_products(self):
        result = self.store.product_service.list_products()
        for product in result["products"]:
            print(f"- [{product['id']}] {product['name']} ${product['price']} (stock {product['stock']})")

    def _add_to_cart(self, argument: str):
        parts = argument.split()
        if not parts:
            print("Usage: add <product id> [quantity]")
            return
        quantity = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 1
        result = self.store.add_to_cart(self.session_id, parts[0], quantity)
        print(result["message"])
        if result["clampedToStock"]:
            print(f"Quantity limited to available stock: {result['item']['quantity']}")

    def _show_cart(self):
        """Show cart contents and totals"""
        cart = self.store.get_cart_details(self.session_id, self.user_id, self.delivery_method)
        print(f"\n{cart['message']}")
        if cart['cart_items']:
            for item in cart['cart_items']:
                print(f"- {item['name']} x{item['quantity']}: ${item['lineTotal']}")
            summary = cart['summary']
            print(f"Subtotal: ${summary['subtotal']}")
            print(f"Discount: -${summary['discount']}")
            print(f"Shipping ({summary['deliveryMethod']}): ${summary['shipping']}")
            print(f"Total: ${summary['total']}")
            settings = self.store.settings_service.get_settings()
            if settings.primary_currency != "USD":
                total = Decimal(summary['total'])
                print(f"       {format_price(total, settings.primary_currency, settings)}")

    def _process_order(self, payment_method: str):
        """Process final order"""
        result = self.store.place_order(
            self.user_id, self.session_id, self.delivery_method.value, payment_method
        )
        print(f"Order complete! {result['message']} Total: ${result['order']['total']}")

    def _show_balance(self):
        details = self.store.balance_service.get_balance_details(self.user_id, limit=5)
        print(f"Balance: ${details['balance']['balance']}")
        for transaction in details["transactions"]:
            print(f"- {transaction['type']} ${transaction['amount']} {transaction['status']}")

    def _accept_terms(self):
        status = self.store.balance_service.get_terms_status(self.user_id)
        if status["hasAccepted"]:
            print(f"Terms already accepted on {status['acceptedAt']}")
            return
        id_number = input("Id number: ").strip()
        signature = input("Type your full name as signature: ").strip()
        self.store.balance_service.accept_terms(self.user_id, id_number, signature)
        print("Terms accepted")

    async def _recharge_flow(self):
        """Walk the recharge workflow step by step"""
        workflow = self.store.new_recharge_workflow(self.user_id)

        while not workflow.is_finished:
            try:
                if workflow.state == WorkflowState.SELECT_METHOD:
                    if not self._select_recharge_options(workflow):
                        workflow.cancel()
                        break
                    await workflow.proceed()

                elif workflow.state == WorkflowState.VERIFY_PAYMENT:
                    payment = self._ask_mobile_payment(workflow)
                    if payment is None and workflow.method.supports_auto_verification:
                        workflow.back()
                        continue
                    print("Verifying payment...")
                    await workflow.verify(payment)

                elif workflow.state == WorkflowState.REJECTED:
                    print(f"Payment rejected: {workflow.last_error}")
                    if input("Try again? (y/n) ").strip().lower() != "y":
                        break
                    workflow.back()

            except StorefrontError as e:
                print(f"Error: {e.message}")
                if e.code == "TERMS_NOT_ACCEPTED":
                    print("Use the 'terms' command first.")
                    break

        if workflow.is_finished:
            print(f"Recharge {workflow.state.name.lower().replace('_', ' ')}. {workflow.message or ''}")

    def _select_recharge_options(self, workflow: RechargeWorkflow) -> bool:
        quick = ", ".join(str(amount) for amount in workflow.quick_amounts())
        amount = input(f"Amount ({quick}) or 'cancel': ").strip()
        if amount.lower() == "cancel":
            return False
        print(f"Amount: ${workflow.select_amount(amount)}")

        methods = workflow.available_methods()
        for index, method in enumerate(methods, 1):
            print(f"{index}. {method.name}")
        choice = input("Payment method number: ").strip()
        if not choice.isdigit() or not 1 <= int(choice) <= len(methods):
            print("Invalid choice")
            return True
        method = workflow.select_method(methods[int(choice) - 1].id)

        if not method.supports_auto_verification:
            workflow.enter_reference(input("Payment reference: "))
        return True

    def _ask_mobile_payment(self, workflow: RechargeWorkflow) -> Optional[dict]:
        if not workflow.method.supports_auto_verification:
            return None
        print(f"Send ${workflow.amount} to {workflow.method.phone} ({workflow.method.bank_name})")
        phone = input("Your phone (04XXXXXXXXX) or 'back': ").strip()
        if phone.lower() == "back":
            return None
        bank_code = input(f"Your bank code ({', '.join(sorted(BANK_CODES)[:5])}, ...): ").strip()
        reference = input("Payment reference: ").strip()
        payment_date = input(f"Payment date [{date.today().isoformat()}]: ").strip()
        return {
            "payerPhone": phone,
            "bankCode": bank_code,
            "reference": reference,
            "paymentDate": payment_date or date.today().isoformat()
        }
