# installer/components/nginx/nginx_site_template.py
# -*- coding: utf-8 -*-
"""
Typed template for the reverse-proxy site configuration.
"""

from dataclasses import asdict, dataclass

from setup.config_models import NginxSettings

NGINX_SITE_TEMPLATE = """\
# Generated by the ERPNext provisioner for {site_name}
server {{
    listen {listen_port};
    server_name {site_name};
    root {bench_dir}/sites;
    client_max_body_size {client_max_body_size};

    location /assets {{
        try_files $uri =404;
    }}

    location ~ ^/protected/(.*) {{
        internal;
        try_files /{site_name}/$1 =404;
    }}

    location /socket.io {{
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
        proxy_set_header X-Frappe-Site-Name {site_name};
        proxy_set_header Origin $scheme://$http_host;
        proxy_set_header Host $host;
        proxy_pass http://127.0.0.1:{socketio_port};
    }}

    location / {{
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_set_header X-Frappe-Site-Name {site_name};
        proxy_set_header Host $host;
        proxy_set_header X-Use-X-Accel-Redirect True;
        proxy_read_timeout 120;
        proxy_redirect off;
        proxy_pass http://127.0.0.1:{upstream_port};
    }}
}}
"""


@dataclass(frozen=True)
class NginxSiteTemplate:
    """Named fields of the generated site file."""

    site_name: str
    bench_dir: str
    listen_port: int = 80
    upstream_port: int = 8000
    socketio_port: int = 9000
    client_max_body_size: str = "20M"

    @classmethod
    def from_settings(
        cls, site_name: str, bench_dir: str, settings: NginxSettings
    ) -> "NginxSiteTemplate":
        return cls(
            site_name=site_name,
            bench_dir=bench_dir,
            listen_port=settings.listen_port,
            upstream_port=settings.upstream_port,
            socketio_port=settings.socketio_port,
            client_max_body_size=settings.client_max_body_size,
        )

    def render(self) -> str:
        return NGINX_SITE_TEMPLATE.format(**asdict(self))
