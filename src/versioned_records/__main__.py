"""Entry point for the versioned-records MCP server."""

from versioned_records.server import create_server


def main() -> None:
    """Run the versioned-records MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
