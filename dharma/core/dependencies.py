from fastapi import Depends, Request

from .container import ApplicationContainer


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Application container not initialised.")
    return container


def get_subscription_service(container: ApplicationContainer = Depends(get_container)):
    return container.subscription_service


def get_stripe_service(container: ApplicationContainer = Depends(get_container)):
    return container.stripe_service


def get_user_service(container: ApplicationContainer = Depends(get_container)):
    return container.user_service


def get_profile_service(container: ApplicationContainer = Depends(get_container)):
    return container.profile_service
