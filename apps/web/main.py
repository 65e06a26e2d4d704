"""FastAPI web application for depmend."""

from typing import Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from core.detect import detect_package_manager, identify
from core.errors import ManifestParseError
from core.orchestrator import analyze
from core.parse_node import merge_dependencies, parse_package_json

app = FastAPI(
    title="depmend",
    description="Find and resolve conflicting version ranges in package.json",
    version="0.1.0",
)


class CheckRequest(BaseModel):
    """Request model for checking a manifest."""
    content: str
    ecosystem: Optional[str] = None


class CheckResponse(BaseModel):
    """Response model for a conflict check."""
    ecosystem: str
    package_manager: Optional[str]
    dependency_count: int
    has_conflicts: bool
    conflicts: list[dict]
    resolutions: list[dict]
    edits: dict[str, str]
    malformed: list[str]


@app.get("/", response_class=HTMLResponse)
async def home():
    """Serve the main application page."""
    return get_index_html()


@app.post("/api/check", response_model=CheckResponse)
async def check_dependencies(request: CheckRequest):
    """Check package.json content for conflicting ranges.

    Nothing is written or installed; ``edits`` are the versions a resolve run
    would apply.
    """
    try:
        content = request.content.strip()
        if not content:
            raise HTTPException(status_code=400, detail="No content provided")

        ecosystem = request.ecosystem or identify(content)
        if ecosystem != "node":
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported ecosystem: {ecosystem}. Only package.json is supported.",
            )

        manifest = parse_package_json(content)
        deps, sections = merge_dependencies(manifest)
        if not deps:
            raise HTTPException(status_code=400, detail="No dependencies found to check")

        analysis = analyze(deps, sections)
        result = analysis.to_dict()

        return CheckResponse(
            ecosystem=ecosystem,
            package_manager=detect_package_manager(manifest),
            dependency_count=result["dependency_count"],
            has_conflicts=bool(analysis.conflicts),
            conflicts=result["conflicts"],
            resolutions=result["resolutions"],
            edits=result["edits"],
            malformed=result["malformed"],
        )

    except HTTPException:
        # Re-raise HTTP exceptions (don't convert to 500)
        raise
    except ManifestParseError as e:
        raise HTTPException(status_code=400, detail=f"Invalid package.json: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error checking dependencies: {str(e)}")


@app.post("/api/upload", response_model=CheckResponse)
async def upload_file(file: UploadFile = File(...)):
    """Upload and check a package.json file."""
    try:
        if not file.filename:
            raise HTTPException(status_code=400, detail="No file uploaded")

        content = await file.read()
        text_content = content.decode("utf-8")

        return await check_dependencies(
            CheckRequest(content=text_content, ecosystem=identify(text_content, file.filename))
        )

    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be valid UTF-8 text")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error processing file: {str(e)}")


def get_index_html() -> str:
    """Return the main HTML page."""
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>depmend - Dependency Conflict Checker</title>
        <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css" rel="stylesheet">
    </head>
    <body>
        <div class="container py-4">
            <div class="text-center mb-4">
                <h1 class="display-5 fw-bold text-primary">depmend</h1>
                <p class="lead text-muted">Find conflicting version ranges in your package.json</p>
            </div>
            <div class="row">
                <div class="col-lg-6 mb-4">
                    <textarea id="content" class="form-control font-monospace" rows="18"
                        placeholder='{"dependencies": {"express": "^4.18.0"}}'></textarea>
                    <button id="check" class="btn btn-primary mt-3">Check</button>
                </div>
                <div class="col-lg-6">
                    <pre id="result" class="bg-light p-3 border rounded"></pre>
                </div>
            </div>
        </div>
        <script>
            document.getElementById('check').addEventListener('click', async () => {
                const response = await fetch('/api/check', {
                    method: 'POST',
                    headers: {'Content-Type': 'application/json'},
                    body: JSON.stringify({content: document.getElementById('content').value})
                });
                const data = await response.json();
                document.getElementById('result').textContent = JSON.stringify(data, null, 2);
            });
        </script>
    </body>
    </html>
    """
