"""Scripts evaluated inside the design editor page.

Each script is a JS function expression taking a single argument, as
``page.evaluate(script, arg)`` expects. They only use the editor's plugin
scripting object (``figma``).
"""

# Editor runtime loaded and a document page is available
EDITOR_READY = """() => typeof figma !== 'undefined' && !!figma.currentPage"""

_GET_NODE = """
const getNode = async (id) => {
  if (typeof figma.getNodeByIdAsync === 'function') {
    return await figma.getNodeByIdAsync(id);
  }
  return figma.getNodeById(id);
};
"""

FIND_COMPONENT = """
async ({ ref }) => {
  const matches = figma.currentPage.findAll(
    (node) => node.type === 'COMPONENT' && (node.name === ref || node.id === ref)
  );
  const component = matches.find((node) => node.name === ref) || matches[0];
  if (!component) {
    return null;
  }
  return {
    id: component.id,
    name: component.name,
    x: component.x,
    y: component.y,
    width: component.width,
    height: component.height,
  };
}
"""

DUPLICATE_COMPONENT = (
    "async ({ componentId, offsetX, tag }) => {"
    + _GET_NODE
    + """
  const component = await getNode(componentId);
  if (!component || component.type !== 'COMPONENT') {
    return null;
  }
  const instance = component.createInstance();
  instance.name = tag ? `${component.name} ${tag}` : component.name;
  instance.x = component.x + offsetX;
  instance.y = component.y;
  return {
    id: instance.id,
    name: instance.name,
    x: instance.x,
    y: instance.y,
    width: instance.width,
    height: instance.height,
  };
}
"""
)

# Loads every distinct family/style used by text layers under the node.
# Individual failures are reported back rather than thrown.
LOAD_FONTS = (
    "async ({ nodeId }) => {"
    + _GET_NODE
    + """
  const node = await getNode(nodeId);
  if (!node) {
    throw new Error(`Node ${nodeId} no longer exists`);
  }
  const seen = new Map();
  for (const text of node.findAll((n) => n.type === 'TEXT')) {
    const font = text.fontName;
    if (font && typeof font === 'object' && font.family) {
      seen.set(`${font.family}\\u0000${font.style}`, { family: font.family, style: font.style });
    }
  }
  const loaded = [];
  const failed = [];
  for (const font of seen.values()) {
    try {
      await figma.loadFontAsync(font);
      loaded.push(font);
    } catch (e) {
      failed.push({ family: font.family, style: font.style, error: String(e && e.message || e) });
    }
  }
  return { loaded, failed };
}
"""
)

SET_TEXT_LAYER = (
    "async ({ nodeId, layerName, text }) => {"
    + _GET_NODE
    + """
  const node = await getNode(nodeId);
  if (!node) {
    throw new Error(`Node ${nodeId} no longer exists`);
  }
  const layer = node.findOne((n) => n.name === layerName && n.type === 'TEXT');
  if (!layer) {
    return false;
  }
  layer.characters = text;
  return true;
}
"""
)

# Returns the PNG bytes base64-encoded; binary does not cross evaluate() intact
EXPORT_NODE = (
    "async ({ nodeId, scale }) => {"
    + _GET_NODE
    + """
  const node = await getNode(nodeId);
  if (!node) {
    throw new Error(`Node ${nodeId} no longer exists`);
  }
  const bytes = await node.exportAsync({
    format: 'PNG',
    constraint: { type: 'SCALE', value: scale },
  });
  let binary = '';
  const chunk = 0x8000;
  for (let i = 0; i < bytes.length; i += chunk) {
    binary += String.fromCharCode.apply(null, bytes.subarray(i, i + chunk));
  }
  return btoa(binary);
}
"""
)

REMOVE_NODE = (
    "async ({ nodeId }) => {"
    + _GET_NODE
    + """
  const node = await getNode(nodeId);
  if (!node || node.removed) {
    return false;
  }
  node.remove();
  return true;
}
"""
)

# Removes every instance on the page whose name carries the session tag
SWEEP_INSTANCES = """
({ tag }) => {
  const stale = figma.currentPage.findAll(
    (node) => node.type === 'INSTANCE' && node.name.endsWith(tag)
  );
  for (const node of stale) {
    node.remove();
  }
  return stale.length;
}
"""
