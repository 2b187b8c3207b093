from __future__ import annotations

from app.services.bootstrap import DEMO_PROBLEM


def submission_payload(*, submission_id: str, problem_id: int | None = None) -> dict[str, object]:
    return {
        "problemId": problem_id if problem_id is not None else DEMO_PROBLEM["problem_id"],
        "submissionId": submission_id,
        "accountId": "acct-42",
        "files": {
            "/App.js": {"code": "export default function App() { return <main />; }\n", "active": True},
            "/package.json": '{"name": "search", "dependencies": {"react": "^18.2.0"}}',
            "/public/index.html": "<div id=\"root\"></div>\n",
        },
        "chatHistory": [{"role": "user", "content": "make it debounce"}],
    }
