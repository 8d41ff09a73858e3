"""Shell hook scripts and rc-file management for bash, zsh and fish."""
from __future__ import annotations

import dataclasses
import os
import re
from pathlib import Path

START_MARKER = "# >>> dir-jumper >>>"
END_MARKER = "# <<< dir-jumper <<<"

BASH_INIT = """\
# dir-jumper integration for bash
__dir_jumper_record() {
    if [ "$PWD" != "${__DIR_JUMPER_LAST:-}" ]; then
        __DIR_JUMPER_LAST="$PWD"
        (command dir-jumper --add "$PWD" >/dev/null 2>&1 &)
    fi
}

case ";${PROMPT_COMMAND:-};" in
    *";__dir_jumper_record;"*) ;;
    *) PROMPT_COMMAND="__dir_jumper_record${PROMPT_COMMAND:+;$PROMPT_COMMAND}" ;;
esac

j() {
    local target
    target="$(command dir-jumper "$@")" && [ -d "$target" ] && cd "$target"
}

_dir_jumper_complete() {
    local IFS=$'\\n'
    COMPREPLY=($(command dir-jumper --completion "${COMP_WORDS[COMP_CWORD]}"))
}
complete -o nospace -F _dir_jumper_complete j
"""

ZSH_INIT = """\
# dir-jumper integration for zsh
__dir_jumper_record() {
    (command dir-jumper --add "$PWD" >/dev/null 2>&1 &)
}

autoload -Uz add-zsh-hook
add-zsh-hook chpwd __dir_jumper_record

j() {
    local target
    target="$(command dir-jumper "$@")" && [ -d "$target" ] && cd "$target"
}

_dir_jumper_complete() {
    local -a candidates
    candidates=("${(@f)$(command dir-jumper --completion "${words[CURRENT]}")}")
    compadd -U -Q -- $candidates
}
if (( $+functions[compdef] )); then
    compdef _dir_jumper_complete j
fi
"""

FISH_INIT = """\
# dir-jumper integration for fish
function __dir_jumper_record --on-variable PWD
    command dir-jumper --add "$PWD" >/dev/null 2>&1 &
    disown 2>/dev/null
end

function j
    set -l target (command dir-jumper $argv)
    and test -d "$target"
    and cd "$target"
end

complete -c j -f -a '(command dir-jumper --completion (commandline -ct))'
"""


@dataclasses.dataclass(frozen=True)
class ShellHook:
    """How one shell loads the dir-jumper hook script."""

    init_script: str
    rc_file: str
    load_line: str

    @property
    def block(self) -> str:
        """The managed rc-file block, ending in a newline."""
        return f"{START_MARKER}\n{self.load_line}\n{END_MARKER}\n"


SHELL_HOOKS = {
    "bash": ShellHook(
        BASH_INIT, "~/.bashrc", 'eval "$(dir-jumper --shell-init bash)"'
    ),
    "zsh": ShellHook(ZSH_INIT, "~/.zshrc", 'eval "$(dir-jumper --shell-init zsh)"'),
    "fish": ShellHook(
        FISH_INIT,
        "~/.config/fish/config.fish",
        "dir-jumper --shell-init fish | source",
    ),
}

_BLOCK_PATTERN = re.compile(
    rf"^{re.escape(START_MARKER)}$.*?^{re.escape(END_MARKER)}$\n?",
    re.MULTILINE | re.DOTALL,
)


def shell_hook(shell: str) -> ShellHook:
    """Return the hook of the given shell. Raises ValueError if unknown."""
    try:
        return SHELL_HOOKS[shell]
    except KeyError:
        raise ValueError(
            f"Unsupported shell {shell!r}, expected one of {', '.join(SHELL_HOOKS)}"
        ) from None


def shell_init(shell: str) -> str:
    """Return the hook script for the given shell."""
    return shell_hook(shell).init_script


def default_rc_file(shell: str) -> Path:
    """Return the usual rc file of the given shell."""
    return Path(os.path.expanduser(shell_hook(shell).rc_file))


def write_hook_block(shell: str, rc_path: Path) -> bool:
    """
    Append the managed block for shell to rc_path.

    Returns:
        False if rc_path already holds a managed block, True if it was written.

    Raises:
        ValueError: The shell is not supported. rc_path is left untouched.
    """
    hook = shell_hook(shell)
    content = rc_path.read_text() if rc_path.exists() else ""
    if _BLOCK_PATTERN.search(content):
        return False

    if content.strip():
        content = content.rstrip("\n") + "\n\n"
    rc_path.parent.mkdir(parents=True, exist_ok=True)
    rc_path.write_text(content + hook.block)
    return True


def strip_hook_block(rc_path: Path) -> bool:
    """Remove every managed block from rc_path. Returns True if one was found."""
    if not rc_path.exists():
        return False

    content, count = _BLOCK_PATTERN.subn("", rc_path.read_text())
    if not count:
        return False

    content = content.rstrip("\n")
    rc_path.write_text(content + "\n" if content else "")
    return True
