"""
URL routing for cart API endpoints.
"""
from django.urls import path
from . import views

app_name = 'cart'

urlpatterns = [
    path('cart/', views.CartView.as_view(), name='cart-detail'),
    path('cart/items/', views.CartItemAddView.as_view(), name='cart-item-add'),
    path('cart/items/<int:product_id>/', views.CartItemDetailView.as_view(), name='cart-item-detail'),
]
