"""
Dashboard page.

A single static page: one column per running container, each fed by its
own WebSocket to ``/logs``. Binary frames are log bytes and are decoded
incrementally so multi-byte characters split across frames survive; text
frames are diagnostics from the server.
"""

import html

from logdash.core.config import settings


def get_dashboard_html() -> str:
    """
    Generate the HTML content for the dashboard.

    Returns:
        str: Complete HTML page
    """
    title = html.escape(settings.app_name)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        {_get_css_styles()}
    </style>
</head>
<body>
    <table id="container-table">
        <tr id="container-names"></tr>
        <tr id="container-logs"></tr>
    </table>
    <script>
        {_get_javascript()}
    </script>
</body>
</html>
"""


def _get_css_styles() -> str:
    return """
        body {
            background-color: black;
            color: green;
            font-family: "Courier New", Courier, monospace;
        }

        table {
            width: 100%;
            border-collapse: collapse;
            margin: 0 auto;
        }

        th, td {
            border: 1px solid green;
            padding: 8px;
            text-align: left;
            vertical-align: top;
        }

        th {
            background-color: green;
            color: black;
        }

        td pre {
            height: 400px;
            overflow: auto;
            margin: 0;
            white-space: pre-wrap;
            word-break: break-all;
        }

        .diagnostic {
            color: #ff4444;
        }
    """


def _get_javascript() -> str:
    return """
        const wsProtocol = window.location.protocol === 'https:' ? 'wss:' : 'ws:';

        function appendText(pre, text, className) {
            const span = document.createElement('span');
            if (className) {
                span.className = className;
            }
            span.textContent = text;
            pre.appendChild(span);
            pre.scrollTop = pre.scrollHeight;
        }

        function followContainer(name, pre) {
            const url = `${wsProtocol}//${window.location.host}/logs?container=${encodeURIComponent(name)}`;
            const socket = new WebSocket(url);
            const decoder = new TextDecoder('utf-8');
            socket.binaryType = 'arraybuffer';

            socket.onmessage = event => {
                if (typeof event.data === 'string') {
                    appendText(pre, event.data + '\\n', 'diagnostic');
                } else {
                    appendText(pre, decoder.decode(event.data, {stream: true}));
                }
            };

            socket.onclose = () => {
                appendText(pre, '[stream closed]\\n', 'diagnostic');
            };
        }

        fetch('/containers')
            .then(response => {
                if (!response.ok) {
                    return response.text().then(text => { throw new Error(text); });
                }
                return response.json();
            })
            .then(containers => {
                containers.forEach(name => {
                    const header = document.createElement('th');
                    header.textContent = name;
                    document.getElementById('container-names').appendChild(header);

                    const cell = document.createElement('td');
                    const pre = document.createElement('pre');
                    cell.appendChild(pre);
                    document.getElementById('container-logs').appendChild(cell);

                    followContainer(name, pre);
                });
            })
            .catch(error => {
                const header = document.createElement('th');
                header.textContent = 'Error: ' + error.message;
                document.getElementById('container-names').appendChild(header);
            });
    """
