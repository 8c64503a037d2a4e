import uvicorn


def main() -> None:
    """Run the geo-registration service with uvicorn."""
    uvicorn.run(
        "georeg.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
