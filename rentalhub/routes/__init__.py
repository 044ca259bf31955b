"""
RentalHub Backend — API Routes Package
========================================

What:  HTTP route handlers. Each module owns one resource family.

Route Inventory:
    - health.py:         GET  /health, /api/status, /api/setup/status
    - auth.py:           /api/auth/{register,login,logout,refresh,me}, /api/users/me
    - facilities.py:     /api/facilities[/{id}], /api/courts[/{id}]
    - bookings.py:       /api/bookings[/{id}], POST /api/availability/check
    - products.py:       /api/products[/{id}]
    - rentals.py:        /api/rentals[/{id}], /api/cart[/{item_id}]
    - reviews.py:        /api/reviews[/{id}]
    - payments.py:       /api/payments/{create-order,verify,refund}, GET /api/payments,
                         POST /api/webhooks/razorpay
    - uploads.py:        /api/uploads, /api/storage/{bucket}/{path}
    - notifications.py:  /api/notifications, /read-all, /{id}/read

Routes stay thin: parse the request, call a service, wrap the result in
SuccessResponse. Rules and persistence live in rentalhub.services.
"""
