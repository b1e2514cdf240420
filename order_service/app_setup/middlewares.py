"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS, TrustedHost et confiance en X-Forwarded-*.
Notes:
- Le webhook Stripe n'est soumis à aucun middleware qui lirait ou réécrirait le corps:
  la signature est calculée sur les octets bruts.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from order_service.config import Settings


def register_basic_middlewares(app: FastAPI, settings: Settings) -> None:
    """
    - CORSMiddleware: autorise les origines définies (dev/prod).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    - ProxyHeadersMiddleware: fait confiance aux en-têtes du proxy/gateway (x-forwarded-*).
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.allowed_hosts + ["*"] if "*" in settings.cors_origins else settings.allowed_hosts,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])
