from __future__ import annotations

import uvicorn


def main() -> None:
    uvicorn.run("nodegate.main:app", host="0.0.0.0", port=9200, reload=False)


if __name__ == "__main__":
    main()
