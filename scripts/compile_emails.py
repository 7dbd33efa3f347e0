#!/usr/bin/env python3
"""Inline CSS and minify the Jinja2 email templates.

Source templates live in cashback/templates/emails/*.j2; the output goes to
the compiled/ subdirectory that the mailer renders at runtime. Rerun after
editing any source template:

    python scripts/compile_emails.py
"""

from pathlib import Path

import css_inline
import minify_html
from jinja2 import Environment, FileSystemLoader, select_autoescape

PROJECT_ROOT = Path(__file__).parent.parent
TEMPLATES_DIR = PROJECT_ROOT / "cashback" / "templates" / "emails"

# Template name -> Jinja2 variables it renders
TEMPLATES = {
    "otp-code.j2": ["name", "otp", "expires_minutes"],
    "welcome.j2": ["name", "dashboard_url"],
    "password-reset.j2": ["name", "reset_url"],
    "referral-bonus.j2": ["name", "amount", "wallet_url"],
    "withdrawal-update.j2": ["name", "amount", "status", "notes"],
}

# The minifier keeps quotes around URL-shaped attribute values
PLACEHOLDER_PREFIX = "https://jinja-placeholder.local/var/"


def _restore_variables(html: str, variables: list[str]) -> str:
    for var in variables:
        marker = f"{PLACEHOLDER_PREFIX}{var}"
        expression = f"{{{{ {var} }}}}"
        # Unquoted attribute values first, then anything left in text nodes
        html = html.replace(f"={marker}>", f'="{expression}">')
        html = html.replace(f"={marker} ", f'="{expression}" ')
        html = html.replace(f'"{marker}"', f'"{expression}"')
        html = html.replace(marker, expression)
    return html


def compile_template(
    env: Environment, template_name: str, variables: list[str], output_dir: Path
) -> Path:
    """Render one template with placeholders, inline and minify it.

    Returns:
        Path of the written .html file
    """
    placeholders = {var: f"{PLACEHOLDER_PREFIX}{var}" for var in variables}
    html = env.get_template(template_name).render(**placeholders)
    html = css_inline.inline(html)
    html = minify_html.minify(html, minify_css=True)
    html = _restore_variables(html, variables)

    output_path = output_dir / f"{Path(template_name).stem}.html"
    output_path.write_text(html, encoding="utf-8")
    return output_path


def main() -> None:
    output_dir = TEMPLATES_DIR / "compiled"
    output_dir.mkdir(exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )

    print("Compiling email templates...")
    for template_name, variables in TEMPLATES.items():
        if not (TEMPLATES_DIR / template_name).exists():
            print(f"  ✗ {template_name} (not found)")
            continue
        output_path = compile_template(env, template_name, variables, output_dir)
        print(f"  ✓ {template_name} -> {output_path.name}")


if __name__ == "__main__":
    main()
