"""Service Worker JavaScript for PWA caching.

Lifecycle:
- install: precache STATIC_ASSETS into "pwa-cache-<version>", then skipWaiting()
- activate: delete every other cache, then clients.claim()
- fetch: static assets (asset list or ./icons/) are cache-first; everything
  else is network-first. Network failures fall back to the cached icon for
  icon paths and to the cached shell page otherwise.

pwawrap.runtime.OfflineCacheRuntime models the same state machine in Python.
"""

import json
from string import Template

from ._assets import ICON_FALLBACK, ICONS_PREFIX, SHELL_FALLBACK, STATIC_ASSETS
from ._version import CACHE_NAME_PREFIX

# The template must not contain "$" other than placeholders; the script
# therefore builds strings by concatenation instead of template literals.
_WORKER_TEMPLATE = Template(
    """// Service Worker for a pwawrap shell
// Bump CACHE_VERSION to evict assets cached by earlier deployments.

const CACHE_VERSION = $cache_version;
const CACHE_NAME = $cache_prefix + CACHE_VERSION;

const STATIC_ASSETS = $static_assets;
const ICONS_PREFIX = $icons_prefix;
const SHELL_FALLBACK = $shell_fallback;
const ICON_FALLBACK = $icon_fallback;

// Path of a same-origin URL relative to the worker scope ("./..."), or null.
function scopeRelativePath(url) {
    const scope = new URL(self.registration.scope);
    if (url.origin !== scope.origin || !url.pathname.startsWith(scope.pathname)) {
        return null;
    }
    return './' + url.pathname.slice(scope.pathname.length);
}

function isStaticAsset(url) {
    const relative = scopeRelativePath(url);
    return relative !== null &&
        (STATIC_ASSETS.includes(relative) || relative.startsWith(ICONS_PREFIX));
}

function isIconPath(url) {
    const relative = scopeRelativePath(url);
    return relative !== null && relative.startsWith(ICONS_PREFIX);
}

function scopedRequest(path) {
    return new Request(new URL(path, self.registration.scope).href);
}

function offlineResponse() {
    return new Response('Offline', {
        status: 503,
        statusText: 'Service Unavailable',
        headers: { 'Content-Type': 'text/plain' }
    });
}

// Cached shell page, the last backstop for every failure path.
function shellFallback() {
    return caches.match(scopedRequest(SHELL_FALLBACK))
        .then(response => response || offlineResponse());
}

function staticFallback(url) {
    if (!isIconPath(url)) {
        return shellFallback();
    }
    return caches.match(scopedRequest(ICON_FALLBACK))
        .then(response => response || shellFallback());
}

// Static assets: cache-first, store successful network responses
function cacheFirst(request, url) {
    return caches.match(request).then(cachedResponse => {
        if (cachedResponse) {
            return cachedResponse;
        }
        return fetch(request)
            .then(response => {
                if (response.ok && request.method === 'GET') {
                    // A body can be read once: cache a clone, return the original
                    const responseClone = response.clone();
                    caches.open(CACHE_NAME).then(cache => cache.put(request, responseClone));
                }
                return response;
            })
            .catch(() => staticFallback(url));
    });
}

// Everything else: network-first, cache untouched on success
function networkFirst(request) {
    return fetch(request).catch(() =>
        caches.match(request).then(cachedResponse => cachedResponse || shellFallback())
    );
}

self.addEventListener('install', (event) => {
    console.log('[SW] Installing', CACHE_NAME);
    event.waitUntil(
        caches.open(CACHE_NAME)
            .then(cache => cache.addAll(STATIC_ASSETS))
            .then(() => self.skipWaiting())
    );
});

self.addEventListener('activate', (event) => {
    console.log('[SW] Activating', CACHE_NAME);
    event.waitUntil(
        caches.keys()
            .then(cacheNames => Promise.all(
                cacheNames
                    .filter(cacheName => cacheName !== CACHE_NAME)
                    .map(cacheName => {
                        console.log('[SW] Deleting old cache:', cacheName);
                        return caches.delete(cacheName);
                    })
            ))
            .then(() => self.clients.claim())
    );
});

self.addEventListener('fetch', (event) => {
    const request = event.request;
    const url = new URL(request.url);

    if (isStaticAsset(url)) {
        event.respondWith(cacheFirst(request, url));
    } else {
        event.respondWith(networkFirst(request));
    }
});
"""
)


def build_service_worker(cache_version: str) -> str:
    """Render service-worker.js.

    Args:
        cache_version: Version literal embedded in the cache name.

    Returns:
        JavaScript source. Identical inputs give identical output.
    """
    return _WORKER_TEMPLATE.substitute(
        cache_version=json.dumps(cache_version),
        cache_prefix=json.dumps(CACHE_NAME_PREFIX),
        static_assets=json.dumps(list(STATIC_ASSETS)),
        icons_prefix=json.dumps(ICONS_PREFIX),
        shell_fallback=json.dumps(SHELL_FALLBACK),
        icon_fallback=json.dumps(ICON_FALLBACK),
    )
