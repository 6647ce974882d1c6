"""
Backend-neutral tool catalog.

Each entry is ``{name, description, input_schema}``; provider adapters
reshape it into their own tool declaration format.
"""


def _path_param(description: str) -> dict:
    return {"type": "string", "description": description}


TOOL_CATALOG: list[dict] = [
    {
        "name": "read_file",
        "description": "Read the contents of a file in the project. Returns the full file content as text.",
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Relative path from the project root to the file to read"),
            },
            "required": ["path"],
        },
    },
    {
        "name": "write_file",
        "description": (
            "Write content to a file in the project. Creates the file if it doesn't exist, "
            "overwrites if it does. Creates parent directories as needed."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Relative path from the project root to the file to write"),
                "content": {"type": "string", "description": "The full content to write to the file"},
            },
            "required": ["path", "content"],
        },
    },
    {
        "name": "edit_file",
        "description": (
            "Make a targeted edit to a file by replacing an exact string match. More efficient "
            "than write_file for small changes to large files. The old_string must appear "
            "exactly once in the file."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Relative path from the project root to the file to edit"),
                "old_string": {
                    "type": "string",
                    "description": (
                        "The exact text to find in the file. Must match exactly once, "
                        "including whitespace and indentation."
                    ),
                },
                "new_string": {
                    "type": "string",
                    "description": "The replacement text. Use an empty string to delete the matched text.",
                },
            },
            "required": ["path", "old_string", "new_string"],
        },
    },
    {
        "name": "list_directory",
        "description": "List files and directories at the given path. Returns names with '/' suffix for directories.",
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Relative path from the project root. Use '.' for the root directory."),
            },
            "required": ["path"],
        },
    },
    {
        "name": "delete_file",
        "description": (
            "Delete a file from the project. Use when refactoring requires removing files "
            "(e.g., dead modules, renamed files)."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Relative path from the project root to the file to delete"),
            },
            "required": ["path"],
        },
    },
    {
        "name": "get_file_info",
        "description": (
            "Get metadata about a file without reading its contents. Returns existence, size, "
            "type (file or directory), and line count. Useful for checking whether a file "
            "exists or gauging its size before reading."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Relative path from the project root to the file to inspect"),
            },
            "required": ["path"],
        },
    },
    {
        "name": "execute_command",
        "description": (
            "Execute a shell command in the project directory. Use for running tests, installing "
            "dependencies, or other build tasks. Do NOT use for git operations."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The shell command to execute"},
            },
            "required": ["command"],
        },
    },
    {
        "name": "search_files",
        "description": (
            "Search for a text pattern across files in the project using grep. Returns matching "
            "lines with file paths and line numbers."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "The text or regex pattern to search for"},
                "path": _path_param("Relative directory to search in. Use '.' for the entire project."),
                "include": {
                    "type": "string",
                    "description": "Optional glob pattern to filter files (e.g., '*.js', '*.ts')",
                },
            },
            "required": ["pattern"],
        },
    },
    {
        "name": "find_files",
        "description": (
            "Find files by name or glob pattern across the project tree. Unlike search_files which "
            "searches file contents, this searches file paths/names. Returns matching file paths "
            "relative to the project root."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Glob pattern to match file names (e.g., '*.test.ts', 'Dockerfile', '*.py')",
                },
                "path": _path_param("Relative directory to search in. Defaults to the project root."),
            },
            "required": ["pattern"],
        },
    },
    {
        "name": "view_diff",
        "description": (
            "View the uncommitted changes (diff) in the workspace. Shows what you have modified "
            "so far. Useful for self-review before calling done."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": _path_param("Optional relative path to limit the diff to a specific file or directory"),
            },
            "required": [],
        },
    },
    {
        "name": "done",
        "description": (
            "Signal that the implementation is complete. Call this when all changes have been "
            "made and you are confident the work is done."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": (
                        "A short one-line title (max ~72 chars) summarizing the change, suitable for "
                        "a commit message or PR title. Use imperative mood (e.g., 'Add retry logic "
                        "to payment webhook handler')."
                    ),
                },
                "summary": {
                    "type": "string",
                    "description": (
                        "A concise summary of what was changed and why, suitable for a PR "
                        "description body"
                    ),
                },
            },
            "required": ["title", "summary"],
        },
    },
]

TOOL_NAMES = tuple(tool["name"] for tool in TOOL_CATALOG)
