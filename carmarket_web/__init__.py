"""
HTTP layer for the car market.

``create_app`` in ``carmarket_web.app`` wires the routers below onto one
FastAPI application:
- carmarket_web.auth_routes.router    /auth
- carmarket_web.user_routes.router    /users
- carmarket_web.car_routes.router     /cars
- carmarket_web.admin_routes.router   /admin
- carmarket_web.faucet_routes.router  /faucet
- carmarket_web.sse_routes.router     /sse
"""
