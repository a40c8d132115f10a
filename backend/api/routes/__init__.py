from api.routes import containers, health, images, metrics, networks, streams, system, volumes

ROUTERS = [
    health.router,
    metrics.router,
    containers.router,
    images.router,
    volumes.router,
    networks.router,
    system.router,
    streams.router,
]
