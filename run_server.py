"""Run the relay with uvicorn."""

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "support_relay:application", factory=True, host="0.0.0.0", port=8000
    )
