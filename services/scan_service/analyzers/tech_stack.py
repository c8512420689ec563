"""Best-effort technology fingerprinting (unscored).

Markers are read from globals, DOM and asset URLs in the page; backend
languages are inferred from response headers and from the frameworks found.
"""

import re
from typing import Mapping

from playwright.async_api import Page

from services.scan_service.schemas.report import ServerInfo, TechItem, TechStackResult

LANGUAGE_ICON = "🗣️"
DEFAULT_ICON = "🔩"

CATEGORY_ICONS = {
    "JS Framework": "⚛️",
    "JS Library": "📦",
    "CSS Framework": "🎨",
    "Icon Library": "🔣",
    "CMS": "📝",
    "E-commerce": "🛒",
    "Website Builder": "🏗️",
    "Analytics": "📊",
    "Animation Library": "✨",
    "UI Library": "🖼️",
    "UI Library / Builder": "🖼️",
    "Data Visualization": "📈",
    "3D / WebGL": "🎮",
    "Payment": "💳",
    "Maps": "🗺️",
    "Security": "🛡️",
    "Customer Support": "💬",
    "Error Tracking": "🐛",
    "HTTP Client": "🌐",
    "JS Utility": "🔧",
    "Fonts": "🔤",
    "CDN": "☁️",
}

JS_FRAMEWORKS = {"Next.js", "Nuxt.js", "Svelte", "React", "Vue.js", "Angular"}
PHP_PLATFORMS = {"WordPress", "Joomla", "Drupal"}

DETECT_TECH_JS = r"""() => {
  const detected = [];
  const win = window;
  const doc = document;
  const add = (name, category, confidence, version) => {
    if (!detected.find((d) => d.name === name)) {
      detected.push({ name, category, confidence, version: version ? String(version) : null });
    }
  };
  const generator = doc.querySelector('meta[name="generator"]')?.getAttribute('content') || '';
  const stylesheets = Array.from(doc.querySelectorAll("link[rel='stylesheet']")).map((l) => l.getAttribute('href') || '');
  const scripts = Array.from(doc.querySelectorAll('script[src]')).map((s) => s.getAttribute('src') || '');
  const inlineScripts = Array.from(doc.querySelectorAll('script:not([src])')).map((s) => s.textContent || '').join(' ');
  const html = doc.documentElement.outerHTML.substring(0, 30000);
  const css = (needle) => stylesheets.some((s) => s.includes(needle));
  const js = (...needles) => scripts.some((s) => needles.some((n) => s.includes(n)));

  if (win.React || win.__REACT_DEVTOOLS_GLOBAL_HOOK__) add('React', 'JS Framework', 'high', win.React?.version);
  if (win.__NEXT_DATA__ || doc.getElementById('__NEXT_DATA__')) add('Next.js', 'JS Framework', 'high');
  if (win.Vue || win.__VUE__) add('Vue.js', 'JS Framework', 'high', win.Vue?.version);
  if (win.__NUXT__ || win.$nuxt) add('Nuxt.js', 'JS Framework', 'high');
  if (win.angular || doc.querySelector('[ng-version], [ng-app]')) {
    add('Angular', 'JS Framework', 'high', doc.querySelector('[ng-version]')?.getAttribute('ng-version'));
  }
  if (win.Svelte || doc.querySelector('[data-svelte-h], [class*="svelte-"]')) add('Svelte', 'JS Framework', 'medium');
  if (win.jQuery || win.$?.fn?.jquery) add('jQuery', 'JS Library', 'high', win.jQuery?.fn?.jquery || win.$?.fn?.jquery);

  if (css('bootstrap') || doc.querySelector('.container .row > [class*="col-"]')) add('Bootstrap', 'CSS Framework', 'medium');
  const utility = doc.querySelector('[class*="flex-"], [class*="text-"], [class*="bg-"], [class*="px-"], [class*="py-"]')?.getAttribute('class') || '';
  if (css('tailwind') || /\b(flex|text|bg|px|py|mt|mb|mr|ml|pt|pb|grid|gap|w|h|rounded|border|shadow)-/.test(utility)) {
    add('Tailwind CSS', 'CSS Framework', 'medium');
  }
  if (css('bulma')) add('Bulma', 'CSS Framework', 'high');
  if (css('materialize') || doc.querySelector('.material-icons, .btn.waves-effect')) add('Materialize', 'CSS Framework', 'medium');
  if (css('foundation')) add('Foundation', 'CSS Framework', 'high');
  if (css('font-awesome') || css('fontawesome') || doc.querySelector('.fa, .fas, .far, .fab, .fal')) add('Font Awesome', 'Icon Library', 'high');

  if (html.includes('/wp-content/') || html.includes('/wp-includes/') || doc.querySelector("link[rel='https://api.w.org/']")) {
    add('WordPress', 'CMS', 'high', generator.match(/WordPress ([\d.]+)/)?.[1]);
  }
  if (win.Shopify || html.includes('cdn.shopify.com')) add('Shopify', 'E-commerce', 'high');
  if (generator.includes('Wix.com') || html.includes('static.wix.com') || html.includes('wix-thunderbolt')) add('Wix', 'Website Builder', 'high');
  if (html.includes('squarespace.com') || html.includes('squarespace-cdn')) add('Squarespace', 'Website Builder', 'high');
  if (html.includes('webflow.com') || doc.querySelector('[data-wf-site], [data-wf-page]')) add('Webflow', 'Website Builder', 'high');
  if (html.includes('ghost.org') || generator.includes('Ghost')) add('Ghost', 'CMS', 'high', generator.match(/Ghost ([\d.]+)/)?.[1]);
  if (generator.includes('Joomla') || html.includes('/media/jui/')) add('Joomla', 'CMS', 'high');
  if (generator.includes('Drupal') || html.includes('/sites/default/files/')) add('Drupal', 'CMS', 'medium');

  if (win.gtag || js('googletagmanager.com/gtag', 'google-analytics.com')) add('Google Analytics', 'Analytics', 'high');
  if (win.google_tag_manager || js('googletagmanager.com/gtm')) add('Google Tag Manager', 'Analytics', 'high');
  if (win._fbq || win.fbq || js('connect.facebook.net')) add('Meta Pixel', 'Analytics', 'high');
  if (js('hotjar.com')) add('Hotjar', 'Analytics', 'high');
  if (win.mixpanel || js('cdn.mxpnl.com')) add('Mixpanel', 'Analytics', 'high');
  if (win.amplitude || js('cdn.amplitude.com')) add('Amplitude', 'Analytics', 'high');
  if (js('clarity.ms')) add('Microsoft Clarity', 'Analytics', 'high');
  if (win.dataLayer || inlineScripts.includes('dataLayer')) add('Google Tag Manager (dataLayer)', 'Analytics', 'medium');

  if (win.Framer || js('framer.com', 'framerusercontent.com')) add('Framer', 'UI Library / Builder', 'high');
  if (win.motion || js('framer-motion')) add('Framer Motion', 'Animation Library', 'medium');
  if (win.gsap || js('greensock', 'gsap')) add('GSAP', 'Animation Library', 'high');
  if (win.Swiper || doc.querySelector('.swiper, .swiper-container')) add('Swiper', 'UI Library', 'high');
  if (win.Chart || js('chart.js')) add('Chart.js', 'Data Visualization', 'high');
  if (win.d3 || js('d3js.org', '/d3.')) add('D3.js', 'Data Visualization', 'high');
  if (win.THREE || js('three.js', 'threejs')) add('Three.js', '3D / WebGL', 'high');
  if (win.Stripe || js('js.stripe.com')) add('Stripe', 'Payment', 'high');
  if (js('maps.googleapis.com')) add('Google Maps', 'Maps', 'high');
  if (js('recaptcha.net', 'recaptcha/api.js')) add('Google reCAPTCHA', 'Security', 'high');
  if (js('intercom.io')) add('Intercom', 'Customer Support', 'high');
  if (win.Sentry || js('browser.sentry-cdn.com')) add('Sentry', 'Error Tracking', 'high');
  if (win.axios || js('axios.min')) add('Axios', 'HTTP Client', 'medium');
  if (win._ && win._.VERSION) add('Lodash', 'JS Utility', 'high', win._.VERSION);
  if (win.moment) add('Moment.js', 'JS Utility', 'high', win.moment.version);
  if (win.Typekit || css('typekit')) add('Adobe Typekit / Fonts', 'Fonts', 'high');
  if (css('fonts.googleapis.com') || js('fonts.googleapis.com')) add('Google Fonts', 'Fonts', 'high');
  if (js('cdnjs.cloudflare.com')) add('Cloudflare CDN', 'CDN', 'medium');
  if (js('unpkg.com')) add('unpkg CDN', 'CDN', 'medium');
  if (js('jsdelivr.net')) add('jsDelivr CDN', 'CDN', 'medium');

  return detected;
}"""

LANGUAGE_HINTS_JS = r"""() => {
  const scripts = Array.from(document.querySelectorAll('script'));
  const stylesheets = Array.from(document.querySelectorAll("link[rel='stylesheet']")).map((l) => l.getAttribute('href') || '');
  const html = document.documentElement.outerHTML.substring(0, 20000);
  const publicId = document.doctype?.publicId || '';
  return {
    tsSource: scripts.some((s) => {
      const src = s.getAttribute('src') || '';
      const body = s.textContent || '';
      return /\.tsx?(\?|$)/.test(src) || (body.includes('sourceMappingURL') && body.includes('.ts'));
    }) || html.includes('__TSX__') || html.includes('ts-loader'),
    moduleScripts: scripts.some((s) => s.getAttribute('type') === 'module'),
    sass: stylesheets.some((s) => s.includes('.scss') || s.includes('sass')) || (html.includes('sourceMappingURL') && html.includes('.scss')),
    php: html.includes('.php') || html.includes('phpmailer') || html.includes('PHPSESSID'),
    htmlVersion: publicId.includes('4.0') ? 'HTML 4' : publicId.includes('XHTML') ? 'XHTML' : 'HTML5',
  };
}"""


class _Languages:
    def __init__(self):
        self.items: list[TechItem] = []

    def add(self, name: str, confidence: str, version: str | None = None) -> None:
        if not any(i.name == name for i in self.items):
            self.items.append(TechItem(name=name, category="Language", confidence=confidence,
                                       version=version, icon=LANGUAGE_ICON))


def infer_languages(server_info: ServerInfo, detected: list[TechItem], hints: dict) -> list[TechItem]:
    langs = _Languages()
    sv = (server_info.server or "").lower()
    pb = (server_info.powered_by or "").lower()

    if "php" in pb:
        m = re.search(r"PHP/([\d.]+)", server_info.powered_by or "", re.IGNORECASE)
        langs.add("PHP", "high", m.group(1) if m else None)
    if "express" in pb or "node" in pb:
        langs.add("Node.js", "high")
    if any(k in pb for k in ("python", "django", "flask", "fastapi")):
        langs.add("Python", "high")
    if "ruby" in pb or "passenger" in pb or "webrick" in sv or "puma" in sv:
        langs.add("Ruby", "high")
    if any(k in sv for k in ("tomcat", "jboss", "wildfly")) or "jsp" in pb:
        langs.add("Java", "high")
    if "caddy" in sv or "go " in pb:
        langs.add("Go", "high")
    if any(k in sv for k in ("gunicorn", "uvicorn", "wsgi")):
        langs.add("Python", "high")
    if "iis" in sv or "asp.net" in pb:
        langs.add("C# / ASP.NET", "high")

    names = {t.name for t in detected}
    if names & JS_FRAMEWORKS:
        langs.add("Node.js", "medium")
    if "Next.js" in names or "Angular" in names:
        langs.add("TypeScript", "medium")
    if names & PHP_PLATFORMS:
        langs.add("PHP", "high")
    if "Ghost" in names:
        langs.add("Node.js", "high")

    langs.add("JavaScript", "high")
    if hints.get("tsSource"):
        langs.add("TypeScript", "high")
    elif hints.get("moduleScripts"):
        langs.add("TypeScript", "medium")
    if hints.get("sass"):
        langs.add("Sass / SCSS", "medium")
    if hints.get("php"):
        langs.add("PHP", "medium")
    langs.add(hints.get("htmlVersion") or "HTML5", "high")
    langs.add("CSS", "high")

    return langs.items


def build_tech_stack(markers: list[dict], hints: dict, headers: Mapping[str, str] | None) -> TechStackResult:
    headers = headers or {}
    server_info = ServerInfo(server=headers.get("server"), powered_by=headers.get("x-powered-by"))
    detected = [
        TechItem(
            name=m["name"],
            category=m["category"],
            confidence=m["confidence"],
            version=m.get("version") or None,
            icon=CATEGORY_ICONS.get(m["category"], DEFAULT_ICON),
        )
        for m in markers
    ]
    languages = infer_languages(server_info, detected, hints)
    return TechStackResult(
        detected=languages + detected,
        server_info=server_info,
        total_detected=len(languages) + len(detected),
    )


async def check_tech_stack(page: Page, headers: Mapping[str, str] | None) -> TechStackResult:
    markers = await page.evaluate(DETECT_TECH_JS)
    hints = await page.evaluate(LANGUAGE_HINTS_JS)
    return build_tech_stack(markers, hints, headers)
