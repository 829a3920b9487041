"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from etims_pos.catalog.models import Ingredient, Recipe, RecipeComponent
from etims_pos.parties.models import Customer, Supplier
from etims_pos.pos.models import Order, OrderItem, SalesInvoice
from etims_pos.purchasing.models import Purchase, PurchaseItem
from etims_pos.kra.models import DeviceCredential
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_supplier(name=None, tin='P051234567A', bhf_id='00'):
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        return Supplier.objects.create(
            name=name,
            tin=tin,
            bhf_id=bhf_id,
            phone='0712345678'
        )

    @staticmethod
    def create_customer(name=None, kra_pin=None):
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        return Customer.objects.create(name=name, kra_pin=kra_pin)

    @staticmethod
    def create_ingredient(name=None, unit='kg', cost_per_unit=Decimal('100.00'), tax_ty_cd='B',
                          item_cd=None, item_cls_cd=None, category='Produce'):
        """Create a test ingredient; pass item_cd to make it KRA-registered"""
        if not name:
            name = f'Ingredient_{TestDataFactory.random_string(6)}'
        return Ingredient.objects.create(
            name=name,
            unit=unit,
            category=category,
            cost_per_unit=cost_per_unit,
            tax_ty_cd=tax_ty_cd,
            item_cd=item_cd,
            item_cls_cd=item_cls_cd or ('5020230500' if item_cd else None),
            kra_status='ok' if item_cd else 'pending'
        )

    @staticmethod
    def create_recipe(name=None, price=Decimal('580.00'), tax_ty_cd='B', item_cd=None, item_cls_cd=None,
                      category='Food', components=None):
        """Create a test recipe; components is a list of (ingredient, quantity)"""
        if not name:
            name = f'Recipe_{TestDataFactory.random_string(6)}'
        recipe = Recipe.objects.create(
            name=name,
            category=category,
            price=price,
            tax_ty_cd=tax_ty_cd,
            item_cd=item_cd,
            item_cls_cd=item_cls_cd or ('90101500' if item_cd else None),
            kra_status='ok' if item_cd else 'pending'
        )
        for ingredient, quantity in components or []:
            RecipeComponent.objects.create(recipe=recipe, ingredient=ingredient, quantity=quantity)
        return recipe

    @staticmethod
    def create_purchase(user=None, supplier=None, supplier_invoice_no=None, status='finalized',
                        total_tax_amount=Decimal('0.00')):
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        return Purchase.objects.create(
            supplier=supplier,
            supplier_invoice_no=supplier_invoice_no or random.randint(1000, 99999),
            purchase_date=timezone.now().date(),
            status=status,
            total_tax_amount=total_tax_amount,
            created_by=user
        )

    @staticmethod
    def create_purchase_item(purchase, ingredient=None, quantity=Decimal('10.000'), unit_price=Decimal('100.00')):
        if not ingredient:
            ingredient = TestDataFactory.create_ingredient()
        return PurchaseItem.objects.create(
            purchase=purchase,
            ingredient=ingredient,
            quantity=quantity,
            unit_price=unit_price
        )

    @staticmethod
    def create_order(user=None, customer=None, discount_amount=Decimal('0.00'), items=None):
        """Create a test order; items is a list of (recipe, quantity)"""
        order = Order.objects.create(
            order_number=f'ORD-TEST-{TestDataFactory.random_string(8).upper()}',
            customer=customer,
            discount_amount=discount_amount,
            created_by=user
        )
        for recipe, quantity in items or []:
            OrderItem.objects.create(
                order=order,
                recipe=recipe,
                name=recipe.name,
                unit_price=recipe.price,
                quantity=quantity
            )
        return order

    @staticmethod
    def create_sales_invoice(order, invc_no, kra_status='ok', payment_method='cash', user=None):
        total = order.get_total()
        return SalesInvoice.objects.create(
            order=order,
            invc_no=invc_no,
            trd_invc_no=f'{invc_no:06d}',
            payment_method=payment_method,
            total_amount=total,
            kra_status=kra_status,
            created_by=user
        )

    @staticmethod
    def create_device_credential(tin='P051234567X', bhf_id='00', cmc_key='test-cmc-key', is_active=True):
        return DeviceCredential.objects.create(
            tin=tin,
            bhf_id=bhf_id,
            cmc_key=cmc_key,
            dvc_id='KRACU0100000001',
            is_active=is_active
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
