"""Access to the application's service container."""

from typing import Annotated

from fastapi import Depends, Request

from dischargely.services.container import Services


def get_services(request: Request) -> Services:
    """Return the container built during application startup."""
    return request.app.state.services


AppServices = Annotated[Services, Depends(get_services)]
