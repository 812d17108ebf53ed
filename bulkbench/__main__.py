if __name__ == "__main__":
    import uvicorn

    from bulkbench.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "bulkbench.api:app", host=settings.host, port=settings.port, log_level="info"
    )
