from typing import Optional
from pydantic import BaseModel, Field

class GetCurrentTime(BaseModel):
    """Get the current date and time"""

class Calculate(BaseModel):
    """Perform a mathematical calculation"""
    expression: str = Field(description="The math expression to evaluate (e.g., \"2 + 2 * 3\")")

class OpenApp(BaseModel):
    """Open an application on the user's computer"""
    app_name: str = Field(description="Name of the app to open (e.g., \"Safari\", \"Notes\", \"Calendar\")")

class RunCommand(BaseModel):
    """Run a shell command and return the output. Use for system tasks."""
    command: str = Field(description="The shell command to run")
    timeout: Optional[int] = Field(None, description="Seconds before the command is killed (default 30)")

class WebSearch(BaseModel):
    """Search the web for information"""
    query: str = Field(description="Search query")

class BrowseWebpage(BaseModel):
    """Fetch a web page and return its readable text"""
    url: str = Field(description="Full http(s) URL of the page")

class ReadFile(BaseModel):
    """Read a text file from the workspace"""
    path: str = Field(description="File path relative to the workspace")

class WriteFile(BaseModel):
    """Create or overwrite a text file in the workspace"""
    path: str = Field(description="File path relative to the workspace")
    content: str = Field(description="Full text content to write")

class ListDirectory(BaseModel):
    """List the files and folders in a workspace directory"""
    path: str = Field(".", description="Directory relative to the workspace (default: the workspace root)")
    detailed: bool = Field(False, description="Include sizes and mark folders")

class AnalyzeImage(BaseModel):
    """Look at an image file in the workspace and describe it or answer a question about it"""
    path: str = Field(description="Image path relative to the workspace")
    prompt: Optional[str] = Field(None, description="Specific question about the image (optional)")

class ReadImageText(BaseModel):
    """Extract all visible text from an image file in the workspace"""
    path: str = Field(description="Image path relative to the workspace")
