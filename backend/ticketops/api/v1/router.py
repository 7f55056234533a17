from fastapi import APIRouter
from ticketops.api.v1.endpoints import (
    auth, users, user_rights, sites, device_types, assets, lookups, tickets,
    sla_policies, rma, stock, worklogs, asset_update_requests, notifications,
    settings, client_registrations, clients, reports,
)
from ticketops.api.v1.endpoints.admin import admin_router

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "ticketops-backend"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(user_rights.router, prefix="/user-rights", tags=["User Rights"])
api_router.include_router(sites.router, prefix="/sites", tags=["Sites"])
api_router.include_router(device_types.router, prefix="/device-types", tags=["Device Types"])
api_router.include_router(assets.router, prefix="/assets", tags=["Assets"])
api_router.include_router(lookups.router, prefix="/lookups", tags=["Lookups"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["Tickets"])
api_router.include_router(sla_policies.router, prefix="/sla-policies", tags=["SLA Policies"])
api_router.include_router(rma.router, prefix="/rma", tags=["RMA"])
api_router.include_router(stock.router, prefix="/stock", tags=["Stock"])
api_router.include_router(worklogs.router, prefix="/worklogs", tags=["Work Logs"])
api_router.include_router(asset_update_requests.router, prefix="/asset-update-requests", tags=["Asset Update Requests"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
api_router.include_router(client_registrations.router, prefix="/client-registrations", tags=["Client Registrations"])
api_router.include_router(clients.router, prefix="/clients", tags=["Clients"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])

# Admin routes
api_router.include_router(admin_router)
