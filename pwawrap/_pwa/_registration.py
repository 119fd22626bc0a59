"""Service Worker registration JavaScript for the shell page.

The worker path is computed from the page location so a bundle works when
deployed under any sub-directory. Registration is skipped for file:// pages,
where service workers are unavailable.
"""

from ._assets import WORKER_FILE

SW_REGISTRATION_JS = f"""
        if ('serviceWorker' in navigator && window.location.protocol !== 'file:') {{
            window.addEventListener('load', () => {{
                const currentPath = window.location.pathname;
                const basePath = currentPath.endsWith('/')
                    ? currentPath
                    : currentPath.substring(0, currentPath.lastIndexOf('/') + 1);

                navigator.serviceWorker.register(basePath + '{WORKER_FILE}')
                    .then(registration => {{
                        console.log('[PWA] Service Worker registered with scope:', registration.scope);
                    }})
                    .catch(error => {{
                        console.error('[PWA] Service Worker registration failed:', error);
                    }});
            }});
        }} else if (window.location.protocol === 'file:') {{
            console.log('[PWA] File protocol detected, skipping Service Worker registration');
        }}
"""
