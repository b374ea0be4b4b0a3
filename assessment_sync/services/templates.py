import os
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, select_autoescape

# Setup Jinja2 environment
current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../templates")
env = Environment(
    loader=FileSystemLoader(template_dir),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_template(template_name: str, context: Dict[str, Any]) -> str:
    template = env.get_template(template_name)
    return template.render(**context)


def get_issue_description(link: str, link_text: str, knowledge: str = "") -> str:
    return render_template("issue_description.html", {
        "link": link,
        "link_text": link_text,
        "knowledge": knowledge,
    }).strip()


def get_container_description(title: str, tag: str, caption_description: str = "") -> str:
    return render_template("container_description.txt", {
        "title": title,
        "tag": tag,
        "caption_description": caption_description,
    }).strip()


def get_markdown_report(context: Dict[str, Any]) -> str:
    return render_template("report.md", context)
