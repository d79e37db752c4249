from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def add_cors(app: FastAPI, settings) -> None:
    """Allow browser clients; an unset origin list means any origin, read-only."""
    origins = settings.cors_origin_list()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["Content-Type"],
            allow_credentials=bool(settings.CORS_ALLOW_CREDENTIALS),
            max_age=600,
        )
    else:
        # credentials cannot be combined with a wildcard origin
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["Content-Type"],
            allow_credentials=False,
            max_age=600,
        )
