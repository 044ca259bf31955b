"""
RentalHub Backend — Services Layer
====================================

What:  Business rules between the routes and the database.
How:   Each service is a class with a module-level singleton. Methods take
       the request's AsyncSession, flush their writes, and raise
       RentalHubError subclasses; the session dependency commits.

Service Inventory:
    - AuthService:          registration, login, token refresh, profile
    - FacilityService:      facility CRUD and search
    - CourtService:         courts under a facility
    - BookingService:       court bookings, conflict detection, availability
    - ProductService:       rentable equipment, tiered pricing
    - RentalService:        rental orders, inventory reservation
    - CartService:          per-user cart with live pricing
    - ReviewService:        product reviews and rating aggregates
    - PaymentService:       Razorpay checkout, refunds, webhooks
    - RazorpayClient:       HTTP client with retry and circuit breaker
    - StorageService:       signed upload/download URLs on local storage
    - NotificationService:  in-app notifications
"""
