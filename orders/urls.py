"""
URL routing for order API endpoints.
"""
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('orders/', views.OrderListCreateView.as_view(), name='order-list'),
    path('orders/checkout/', views.OrderCheckoutView.as_view(), name='order-checkout'),
    path('orders/<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('orders/<int:pk>/items/', views.OrderItemsView.as_view(), name='order-items'),
    path('orders/<int:pk>/accept/', views.OrderAcceptView.as_view(), name='order-accept'),
    path('orders/<int:pk>/reject/', views.OrderRejectView.as_view(), name='order-reject'),
    path('orders/<int:pk>/invoice/', views.OrderInvoiceView.as_view(), name='order-invoice'),
    path('bills/<int:order_id>/', views.BillView.as_view(), name='bill-detail'),
]
